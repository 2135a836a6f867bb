"""
Core flow engine: schemas, templates, model invocation and execution
"""
from .errors import (
    FlowError, DuplicateFlowName, FlowNotFound, InputInvalid, OutputInvalid,
    ModelError, ModelErrorKind, FieldIssue
)
from .schema import Schema, FieldSpec
from .template import Template, render
from .registry import FlowDefinition, FlowRegistry
from .executor import FlowExecutor
from .invoker import ChatModelInvoker, ModelInvoker
from .config import Settings, get_settings

__all__ = [
    'FlowError',
    'DuplicateFlowName',
    'FlowNotFound',
    'InputInvalid',
    'OutputInvalid',
    'ModelError',
    'ModelErrorKind',
    'FieldIssue',
    'Schema',
    'FieldSpec',
    'Template',
    'render',
    'FlowDefinition',
    'FlowRegistry',
    'FlowExecutor',
    'ChatModelInvoker',
    'ModelInvoker',
    'Settings',
    'get_settings'
]
