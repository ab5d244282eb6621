import json
import os
import sys
import tempfile
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Settings are read once at import, so these must be set before any app module loads.
_TMP_DIR = tempfile.mkdtemp(prefix="resume-analysis-tests-")
os.environ["GUEST_USAGE_DB_PATH"] = os.path.join(_TMP_DIR, "guest_usage.db")
os.environ["HISTORY_DB_PATH"] = os.path.join(_TMP_DIR, "analysis_history.db")
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["TRUST_PROXY_HEADERS"] = "1"
os.environ["GUEST_ANALYSIS_QUOTA"] = "1"
os.environ["AUTH_JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["AUTH_JWT_AUDIENCE"] = "authenticated"
os.environ["AI_PROVIDER"] = "gemini"
os.environ["PROVIDER_TIMEOUT_S"] = "2"

from app.core.guest_ledger import clear_guest_usage  # noqa: E402
from app.core.security import InvalidSessionError, VerifiedSession  # noqa: E402
from app.history.db import clear_history  # noqa: E402

ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"

RESUME_TEXT = (
    "Jane Doe\nSenior Backend Engineer\n"
    "- Built Python microservices for payments used by 1.2M users.\n"
    "- Reduced API latency by 38% and led a team of 5 engineers.\n"
    "Education: BSc Computer Science\n"
)
JOB_DESCRIPTION = "Senior Backend Engineer with Python, AWS and distributed systems experience."


def sample_analysis(**overrides):
    payload = {
        "overallScore": 7.8,
        "dimensionScores": {
            "technicalSkills": 8,
            "experience": 7,
            "presentation": 6,
            "education": 7,
            "leadership": 5,
        },
        "experienceLevel": "Senior",
        "yearsOfExperience": 6,
        "strengths": ["Strong Python background"],
        "improvements": ["Quantify more achievements"],
        "missingSkills": ["Kubernetes"],
        "redFlags": [],
        "detectedSkills": {"technical": ["Python", "AWS"], "soft": ["Leadership"]},
        "achievements": ["Cut latency by 38%"],
        "recommendations": {
            "immediate": ["Add a summary"],
            "shortTerm": ["Get AWS certified"],
            "longTerm": ["Move into staff engineering"],
        },
        "atsCompatibility": {"score": 82, "issues": ["Tables in header"]},
        "hiringRecommendation": "Hire",
        "summary": "Solid senior backend engineer.",
    }
    payload.update(overrides)
    return payload


def not_a_resume_payload(message="This looks like a recipe, not a resume."):
    return {"error": "NOT_A_RESUME", "message": message, "detectedType": "recipe"}


class FakeAIClient:
    name = "fake"

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def queue(self, payload):
        self.responses.append(payload if isinstance(payload, str) else json.dumps(payload))

    async def complete(self, messages):
        self.calls.append(list(messages))
        if self.error is not None:
            raise self.error
        if self.responses:
            return self.responses.pop(0)
        return json.dumps(sample_analysis())


class FakeSessionVerifier:
    def __init__(self, users=None):
        self.users = users or {ALICE_TOKEN: "user-alice", BOB_TOKEN: "user-bob"}

    def verify(self, token):
        user_id = self.users.get(token)
        if not user_id:
            raise InvalidSessionError("Invalid or expired token.")
        return VerifiedSession(user_id=user_id)


def auth_headers(token=ALICE_TOKEN, **extra):
    headers = {"Authorization": f"Bearer {token}"}
    headers.update(extra)
    return headers


def install_fakes(app, ai_client=None, verifier=None):
    from app.core.security import get_session_verifier
    from app.services.analysis_service import provide_ai_client

    ai_client = ai_client or FakeAIClient()
    verifier = verifier or FakeSessionVerifier()
    app.dependency_overrides[provide_ai_client] = lambda: ai_client
    app.dependency_overrides[get_session_verifier] = lambda: verifier
    return ai_client, verifier


def reset_stores():
    clear_guest_usage()
    clear_history()
