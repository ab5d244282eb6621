from __future__ import annotations

from datetime import date

from app.ai.types import ChatMessage

_JSON_ONLY = "Return ONLY valid JSON. No markdown, no code fences, no commentary."

_ANALYSIS_SHAPE = """{
  "overallScore": number 1-10,
  "dimensionScores": {"technicalSkills": 1-10, "experience": 1-10, "presentation": 1-10, "education": 1-10, "leadership": 1-10},
  "experienceLevel": "Entry-Level" | "Junior" | "Mid-Level" | "Senior" | "Lead/Principal" | "Executive",
  "yearsOfExperience": number,
  "strengths": string[], "improvements": string[], "missingSkills": string[], "redFlags": string[],
  "detectedSkills": {"technical": string[], "soft": string[]},
  "achievements": string[],
  "recommendations": {"immediate": string[], "shortTerm": string[], "longTerm": string[]},
  "atsCompatibility": {"score": 0-100, "issues": string[]},
  "hiringRecommendation": "Strong Hire" | "Hire" | "Maybe" | "No Hire" | "Needs More Info",
  "summary": string
}"""

_NOT_A_RESUME_SHAPE = """{"error": "NOT_A_RESUME", "message": string, "detectedType": string}"""

_JOB_MATCH_SHAPE = """{
  "matchPercentage": 0-100,
  "matchLevel": "Poor" | "Fair" | "Good" | "Excellent",
  "missingSkills": {"critical": string[], "important": string[], "nice_to_have": string[]},
  "presentSkills": {"exact_matches": string[], "partial_matches": string[], "transferable_skills": string[]},
  "suggestions": [{"priority": "High" | "Medium" | "Low", "category": string, "action": string}],
  "keyword_analysis": {"total_keywords": number, "matched_keywords": number, "missing_keywords": string[]},
  "experience_gap": {"required_years": number, "candidate_years": number, "gap": number, "assessment": string},
  "recommendation": string
}"""

_CAREER_MAP_SHAPE = """{
  "paths": [{
    "name": string, "description": string, "difficulty": "Low" | "Medium" | "High", "timeToGoal": string,
    "steps": [{"role": string, "status": "current" | "future" | "goal", "skills_needed": string[], "timeframe": string, "salary_range": string}]
  }],
  "currentRole": string, "currentSkills": string[], "recommendations": string[]
}"""

_REWRITE_SHAPE = """{
  "original": string,
  "variations": [{"style": "Conservative" | "Balanced" | "Aggressive", "text": string, "changes": string[], "impact": "Low" | "Medium" | "High"}],
  "keywords_matched": string[],
  "ats_score": {"conservative": 1-100, "balanced": 1-100, "aggressive": 1-100},
  "recommendation": string
}"""

_TAILOR_SHAPE = """{
  "tailoredSummary": string,
  "tailoredBullets": [{"original": string, "tailored": string, "keywordsAdded": string[]}],
  "keywordsAdded": string[],
  "atsScoreBefore": 0-100,
  "atsScoreAfter": 0-100,
  "recommendations": string[]
}"""


def _today_context() -> str:
    today = date.today().isoformat()
    return f"Today's date is {today}. Use it for positions marked Present or Current."


def analysis_messages(resume_text: str) -> list[ChatMessage]:
    system = "\n\n".join(
        [
            "You are a senior technical recruiter assessing resumes objectively.",
            _today_context(),
            "If the document is not a professional resume, respond with:\n" + _NOT_A_RESUME_SHAPE,
            "Otherwise respond with this structure:\n" + _ANALYSIS_SHAPE,
            _JSON_ONLY,
        ]
    )
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=f"Resume text:\n{resume_text}"),
    ]


def job_match_messages(resume_text: str, job_description: str) -> list[ChatMessage]:
    system = "\n\n".join(
        [
            "You compare a candidate resume against a job description and report fit and gaps.",
            _today_context(),
            "Match levels: 0-40 Poor, 41-65 Fair, 66-85 Good, 86-100 Excellent.",
            "Respond with this structure:\n" + _JOB_MATCH_SHAPE,
            _JSON_ONLY,
        ]
    )
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=f"Resume text:\n{resume_text}\n\nJob description:\n{job_description}"),
    ]


def tailor_messages(resume_text: str, job_description: str) -> list[ChatMessage]:
    system = "\n\n".join(
        [
            "You tailor a resume to a job description without inventing experience.",
            "Rewrite the summary and the most relevant bullets, and estimate ATS scores before and after.",
            "Respond with this structure:\n" + _TAILOR_SHAPE,
            _JSON_ONLY,
        ]
    )
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=f"Resume text:\n{resume_text}\n\nJob description:\n{job_description}"),
    ]


def career_map_messages(resume_text: str) -> list[ChatMessage]:
    system = "\n\n".join(
        [
            "You are a career development advisor.",
            "Propose three distinct paths: a specialist track, a leadership track and a lateral track.",
            "Respond with this structure:\n" + _CAREER_MAP_SHAPE,
            _JSON_ONLY,
        ]
    )
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(role="user", content=f"Resume text:\n{resume_text}"),
    ]


def rewrite_messages(original_text: str, job_description: str) -> list[ChatMessage]:
    system = "\n\n".join(
        [
            "You rewrite a single resume bullet for ATS compatibility while staying truthful.",
            "Produce Conservative, Balanced and Aggressive variations.",
            "Respond with this structure:\n" + _REWRITE_SHAPE,
            _JSON_ONLY,
        ]
    )
    return [
        ChatMessage(role="system", content=system),
        ChatMessage(
            role="user",
            content=f"Original text:\n{original_text}\n\nJob description:\n{job_description}",
        ),
    ]
