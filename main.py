"""
Command line entry point for the career coaching flows

    python main.py list
    python main.py run analyzeSkillGaps --input '{"digitalTwin": "...", "targetRole": "..."}'
    python main.py plan --profile profile.json --target-role "Data Engineer"
    python main.py interview --profile profile.json --target-job "Data Engineer" --skill SQL
"""
import argparse
import json
import sys
from datetime import datetime
from pathlib import Path

from coach_logging import SessionLogger, set_logger, clear_logger
from core.config import get_settings
from core.errors import FlowError
from flows import QuestionRequest, EvaluationRequest, UserProfile, ask_question, evaluate_answer


def print_section(title):
    """Print a formatted section header"""
    print(f"\n{'='*70}")
    print(f"  {title}")
    print('='*70)


def _load_json(value: str):
    """Inline JSON, or @path to a JSON file"""
    if value.startswith("@"):
        value = Path(value[1:]).read_text(encoding="utf-8")
    return json.loads(value)


def _load_profile(path: str) -> UserProfile:
    return UserProfile.from_dict(json.loads(Path(path).read_text(encoding="utf-8")))


def _report_flow_error(error: FlowError):
    print(f"❌ {error}", file=sys.stderr)
    for issue in getattr(error, "issues", None) or []:
        print(f"   - {issue}", file=sys.stderr)


# ============================================================================
# COMMANDS
# ============================================================================

def cmd_list(args) -> int:
    from management.catalog import FlowCatalog

    catalog = FlowCatalog(get_settings().catalog_path)
    print_section(f"Flows ({len(catalog.list_flows())})")
    for name in catalog.list_flows():
        info = catalog.get_flow_info(name)
        optional = f" (optional: {', '.join(info['optional_inputs'])})" if info['optional_inputs'] else ""
        print(f"  {name}: {', '.join(info['required_inputs']) or '-'}{optional} -> {', '.join(info['outputs'])}")
        if info['description']:
            print(f"      {info['description']}")

    problems = catalog.check()
    if problems:
        print_section("Catalog check")
        for name, result in problems.items():
            for issue in result['issues']:
                print(f"  ❌ {name}: {issue}")
            for warning in result['warnings']:
                print(f"  ⚠️  {name}: {warning}")
    return 1 if any(not result['is_valid'] for result in problems.values()) else 0


def cmd_run(args) -> int:
    from core.utils import create_executor

    flow_input = _load_json(args.input) if args.input else {}
    output = create_executor().run(args.name, flow_input)
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def cmd_plan(args) -> int:
    from core.graph import run_career_plan
    from core.utils import create_executor

    profile = _load_profile(args.profile)
    state = run_career_plan(create_executor(), profile, args.target_role, args.preferences)

    print_section("Digital Twin")
    print(state["digital_twin"])
    print_section(f"Skill Gaps for {args.target_role}")
    print(state["skill_gaps"])
    print_section("Recommendations")
    print(state["gap_recommendations"])
    print_section("Learning Plan")
    for i, item in enumerate(state["learning_recommendations"], 1):
        print(f"  {i}. {item}")
    return 0


def cmd_interview(args) -> int:
    from core.utils import create_executor
    from voice.azure_speech import AzureSpeechBackend
    from voice.capture import CaptureState, InterviewCapture

    executor = create_executor()
    request = QuestionRequest.for_profile(_load_profile(args.profile), args.target_job, args.skill)
    question = ask_question(executor, request)

    print_section("Question")
    print(question)

    capture = InterviewCapture(
        AzureSpeechBackend(),
        prompt=question,
        on_notice=lambda title, description: print(f"⚠️  {title}: {description}"),
    )
    if capture.mount() != CaptureState.READY:
        return 1

    input("\nPress Enter to start recording...")
    capture.start()
    input("🎤 Recording... press Enter to stop.\n")
    answer = capture.stop()
    capture.close()
    print(f"⏱️  {capture.format_elapsed()}")

    if not answer.strip():
        print("❌ No speech was recognized.")
        return 1
    print_section("Your Answer (Transcript)")
    print(answer)

    result = evaluate_answer(executor, EvaluationRequest.follow_up(request, question, answer))
    print_section("Evaluation")
    print(result.evaluation)
    return 0


# ============================================================================
# ENTRY POINT
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Career coaching AI flows")
    parser.add_argument("--log-dir", default=None, help="Directory for session logs (default: LOG_DIR or ./logs)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="List flows and check the catalog")

    run = subparsers.add_parser("run", help="Run one flow")
    run.add_argument("name", help="Flow name, e.g. analyzeSkillGaps")
    run.add_argument("--input", help="Flow input as JSON, or @file.json")

    plan = subparsers.add_parser("plan", help="Digital twin -> skill gaps -> learning plan")
    plan.add_argument("--profile", required=True, help="User profile JSON file")
    plan.add_argument("--target-role", required=True)
    plan.add_argument("--preferences", help="Learning preferences (style, budget, pace)")

    interview = subparsers.add_parser("interview", help="Oral interview practice with Azure Speech")
    interview.add_argument("--profile", required=True, help="User profile JSON file")
    interview.add_argument("--target-job", required=True)
    interview.add_argument("--skill", required=True)

    return parser


COMMANDS = {
    "list": cmd_list,
    "run": cmd_run,
    "plan": cmd_plan,
    "interview": cmd_interview,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    set_logger(SessionLogger(session_id, log_dir=args.log_dir or get_settings().log_dir, console=False))
    try:
        return COMMANDS[args.command](args)
    except FlowError as error:
        _report_flow_error(error)
        return 1
    finally:
        clear_logger()


if __name__ == "__main__":
    sys.exit(main())
