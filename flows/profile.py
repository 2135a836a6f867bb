"""
User profile value as handed over by the profile provider
"""
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


def split_skills(text: str) -> List[str]:
    """'Python, SQL ,  ' -> ['Python', 'SQL']"""
    return [skill.strip() for skill in (text or "").split(",") if skill.strip()]


@dataclass(frozen=True)
class UserProfile:
    """Read-only snapshot of a user's profile document

    Keys follow the stored document (camelCase) when converted with
    from_dict()/to_dict(); unknown keys are kept in `extra`.
    """
    user_id: str
    name: str = ""
    email: str = ""
    skills: List[str] = field(default_factory=list)
    education: str = ""
    job_preferences: str = ""
    digital_twin_description: Optional[str] = None
    learning_preference: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    _KEYS = {
        "id": "user_id",
        "name": "name",
        "email": "email",
        "skills": "skills",
        "education": "education",
        "jobPreferences": "job_preferences",
        "learningPreference": "learning_preference",
    }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserProfile":
        values: Dict[str, Any] = {}
        extra: Dict[str, Any] = {}
        for key, value in data.items():
            if key in cls._KEYS:
                values[cls._KEYS[key]] = value
            elif key == "digitalTwin":
                if isinstance(value, Mapping):
                    values["digital_twin_description"] = value.get("description")
                elif isinstance(value, str):
                    values["digital_twin_description"] = value
            else:
                extra[key] = value

        skills = values.get("skills")
        if isinstance(skills, str):
            values["skills"] = split_skills(skills)
        elif skills is None:
            values["skills"] = []
        else:
            values["skills"] = [str(skill) for skill in skills]

        values.setdefault("user_id", "")
        return cls(extra=extra, **values)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.user_id,
            "email": self.email,
            "name": self.name,
            "education": self.education,
            "jobPreferences": self.job_preferences,
            "skills": list(self.skills),
        }
        if self.learning_preference:
            data["learningPreference"] = self.learning_preference
        if self.digital_twin_description:
            data["digitalTwin"] = {"description": self.digital_twin_description}
        data.update(self.extra)
        return data

    @property
    def has_digital_twin(self) -> bool:
        return bool(self.digital_twin_description and self.digital_twin_description.strip())

    def career_status(self) -> str:
        return f"Education: {self.education}. Job Preferences: {self.job_preferences}."

    def skills_text(self) -> str:
        return ", ".join(self.skills)

    def to_digital_twin_json(self) -> str:
        """The whole profile as JSON, as the interview flow expects it"""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    def with_digital_twin(self, description: str) -> "UserProfile":
        return UserProfile(
            user_id=self.user_id,
            name=self.name,
            email=self.email,
            skills=list(self.skills),
            education=self.education,
            job_preferences=self.job_preferences,
            digital_twin_description=description,
            learning_preference=self.learning_preference,
            extra=dict(self.extra),
        )
