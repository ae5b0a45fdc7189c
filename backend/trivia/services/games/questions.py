"""
Question sources for a game.

- ``bank``: the fixed built-in list, question N is ``BANK[N]``.
- ``generator``: an OpenAI-compatible chat completion endpoint asked for one
  question at a time, steered away from recently served questions.

Whatever the source, a failure never stalls a game: ``QuestionProvider.get``
falls back to a deterministic built-in question (or returns None when the
fallback is disabled, which the host treats as end of game).
"""
import json
import logging
import re
import threading
import time
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from flask import current_app

from trivia import db
from trivia.models import RecentQuestion
from .errors import QuestionSourceError
from .question_bank import BANK, FALLBACK_QUESTIONS

logger = logging.getLogger(__name__)

DIFFICULTIES = ('easy', 'medium', 'hard', 'very_hard')
# Mostly medium and hard, with the occasional easy or very hard question
DIFFICULTY_PATTERN = (
    'easy', 'medium', 'hard', 'medium',
    'very_hard', 'medium', 'hard', 'medium',
    'easy', 'hard',
)
DIFFICULTY_HINTS = {
    'easy': 'Very easy: common knowledge most people would know.',
    'medium': 'Medium: needs some familiarity with the traditions and culture.',
    'hard': 'Hard: obscure facts only enthusiasts might know.',
    'very_hard': 'Very hard: trivia that would stump most people.',
}
_FENCE_RE = re.compile(r"```(?:json)?\s*|\s*```")


def difficulty_for(question_number: int) -> str:
    return DIFFICULTY_PATTERN[question_number % len(DIFFICULTY_PATTERN)]


@dataclass(frozen=True)
class Question:
    question: str
    answers: Tuple[str, str, str, str]
    correct: int
    difficulty: str = 'medium'
    source: str = 'bank'

    @classmethod
    def from_payload(cls, data: Any, source: str, default_difficulty: str = 'medium') -> 'Question':
        """Validate a raw question mapping; raises QuestionSourceError if unusable."""
        if not isinstance(data, dict):
            raise QuestionSourceError('Question payload is not an object')
        text = data.get('question')
        answers = data.get('answers')
        correct = data.get('correct')
        if not isinstance(text, str) or not text.strip():
            raise QuestionSourceError('Question text missing')
        if not isinstance(answers, list) or len(answers) != 4:
            raise QuestionSourceError('Question must have exactly 4 answers')
        if not all(isinstance(a, str) and a.strip() for a in answers):
            raise QuestionSourceError('Answers must be non-empty strings')
        if isinstance(correct, bool) or not isinstance(correct, int) or not 0 <= correct <= 3:
            raise QuestionSourceError('Correct index must be an integer 0-3')
        difficulty = data.get('difficulty')
        if difficulty not in DIFFICULTIES:
            difficulty = default_difficulty
        return cls(
            question=text.strip(),
            answers=tuple(a.strip() for a in answers),
            correct=correct,
            difficulty=difficulty,
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['answers'] = list(self.answers)
        return data


def fallback_question(question_number: int) -> Question:
    payload = FALLBACK_QUESTIONS[question_number % len(FALLBACK_QUESTIONS)]
    return Question.from_payload(payload, source='fallback')


class QuestionGenerator:
    """
    HTTP client for the external question generator.
    - Retries transient failures with exponential backoff.
    - Logs each request with a correlation id.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str = '',
        model: str = 'gpt-4o-mini',
        *,
        topic: str = 'Christmas',
        timeout: float = 20.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.model = model
        self.topic = topic
        self.timeout = timeout
        self.session = session or self._build_session()

    @staticmethod
    def _build_session() -> requests.Session:
        session = requests.Session()
        retry = Retry(
            total=2,
            backoff_factor=0.5,
            status_forcelist=(429, 500, 502, 503, 504),
            allowed_methods=frozenset({"POST"}),
            respect_retry_after_header=True,
        )
        adapter = HTTPAdapter(max_retries=retry)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def build_prompt(self, difficulty: str, avoid: List[Tuple[str, str]]) -> str:
        lines = [
            f"Generate a single {self.topic} trivia question with exactly 4 answer choices.",
            f"Difficulty: {difficulty.upper()}. {DIFFICULTY_HINTS[difficulty]}",
            "Only ONE answer is correct; wrong answers must be plausible.",
        ]
        if avoid:
            lines.append("Do NOT repeat or rephrase any of these recent questions:")
            lines.extend(f'- "{text}" (Answer: {answer})' for text, answer in avoid)
            answers = sorted({answer for _, answer in avoid if answer})
            if answers:
                lines.append("Do NOT use any of these as the correct answer: " + ", ".join(answers))
        lines.append(
            'Respond with raw JSON only: {"question": "...", "answers": ["A", "B", "C", "D"], '
            f'"correct": 0, "difficulty": "{difficulty}"}}'
        )
        return "\n".join(lines)

    def generate(self, question_number: int, avoid: Optional[List[Tuple[str, str]]] = None) -> Question:
        difficulty = difficulty_for(question_number)
        request_id = uuid4().hex[:12]
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": "You write fun, accurate trivia questions. Reply with valid JSON only."},
                {"role": "user", "content": self.build_prompt(difficulty, avoid or [])},
            ],
            "temperature": 0.9,
            "max_tokens": 500,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            logger.debug("Question request start", extra={"question_request_id": request_id})
            response = self.session.post(self.endpoint, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.Timeout as exc:
            logger.warning("Question request timeout", extra={"question_request_id": request_id})
            raise QuestionSourceError("Question request timed out") from exc
        except requests.RequestException as exc:
            logger.error("Question request failed", exc_info=True, extra={"question_request_id": request_id})
            raise QuestionSourceError("Question request failed") from exc
        except ValueError as exc:
            raise QuestionSourceError("Question response is not JSON") from exc

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise QuestionSourceError("Unexpected completion payload") from exc
        return self.parse(content, difficulty)

    @staticmethod
    def parse(content: str, difficulty: str) -> Question:
        cleaned = _FENCE_RE.sub("", (content or "")).strip()
        try:
            raw = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise QuestionSourceError("Could not parse generated question") from exc
        return Question.from_payload(raw, source='generator', default_difficulty=difficulty)


class QuestionProvider:
    """Resolves question N of a game from its configured source."""

    def __init__(self, generator: Optional[QuestionGenerator] = None, *,
                 avoid_count: int = 30, keep_recent: int = 100, fallback_enabled: bool = True) -> None:
        self.generator = generator
        self.avoid_count = avoid_count
        self.keep_recent = keep_recent
        self.fallback_enabled = fallback_enabled

    @classmethod
    def from_config(cls, config) -> 'QuestionProvider':
        generator = QuestionGenerator(
            config.get('QUESTION_API_URL'),
            config.get('QUESTION_API_KEY', ''),
            config.get('QUESTION_MODEL', 'gpt-4o-mini'),
            topic=config.get('QUESTION_TOPIC', 'Christmas'),
            timeout=float(config.get('QUESTION_API_TIMEOUT_SEC', 20)),
        )
        return cls(
            generator,
            avoid_count=int(config.get('QUESTION_AVOID_COUNT', 30)),
            keep_recent=int(config.get('RECENT_QUESTIONS_KEEP', 100)),
            fallback_enabled=bool(config.get('QUESTION_FALLBACK_ENABLED', True)),
        )

    @staticmethod
    def bank_size(source: str) -> Optional[int]:
        return len(BANK) if source == 'bank' else None

    def get(self, source: str, question_number: int) -> Optional[Question]:
        try:
            if source == 'bank':
                if not 0 <= question_number < len(BANK):
                    raise QuestionSourceError(f"Question bank has no entry {question_number}")
                return Question.from_payload(BANK[question_number], source='bank')
            if self.generator is None:
                raise QuestionSourceError("No question generator configured")
            question = self.generator.generate(question_number, self.avoid_list())
            self.remember(question)
            return question
        except QuestionSourceError as exc:
            if not self.fallback_enabled:
                current_app.logger.warning(f"[question-missing] number={question_number} source={source} error={exc}")
                return None
            current_app.logger.warning(f"[question-fallback] number={question_number} source={source} error={exc}")
            return fallback_question(question_number)

    def avoid_list(self) -> List[Tuple[str, str]]:
        recent = (
            RecentQuestion.query
            .order_by(RecentQuestion.asked_at.desc(), RecentQuestion.id.desc())
            .limit(self.avoid_count)
            .all()
        )
        return [(r.question_text, r.correct_answer) for r in recent]

    def remember(self, question: Question) -> None:
        db.session.add(RecentQuestion(
            question_text=question.question,
            answers=json.dumps(list(question.answers)),
            correct_index=question.correct,
            difficulty=question.difficulty,
            asked_at=time.time(),
        ))
        db.session.flush()
        stale = (
            RecentQuestion.query
            .order_by(RecentQuestion.asked_at.desc(), RecentQuestion.id.desc())
            .offset(self.keep_recent)
            .all()
        )
        for row in stale:
            db.session.delete(row)
        db.session.commit()


def get_provider() -> QuestionProvider:
    provider = current_app.extensions.get('trivia_question_provider')
    if provider is None:
        provider = QuestionProvider.from_config(current_app.config)
        current_app.extensions['trivia_question_provider'] = provider
    return provider


class PrefetchCache:
    """Next-question results computed ahead of time, keyed by game then index."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: Dict[int, Tuple[int, Question]] = {}

    def store(self, game_id: int, index: int, question: Question) -> None:
        """Keep the result unless a later question is already cached."""
        with self._lock:
            current = self._items.get(game_id)
            if current is not None and current[0] > index:
                return
            self._items[game_id] = (index, question)

    def take(self, game_id: int, index: int) -> Optional[Question]:
        with self._lock:
            item = self._items.get(game_id)
            if item and item[0] == index:
                del self._items[game_id]
                return item[1]
            return None

    def has(self, game_id: int, index: int) -> bool:
        with self._lock:
            item = self._items.get(game_id)
            return bool(item and item[0] == index)

    def discard(self, game_id: int) -> None:
        with self._lock:
            self._items.pop(game_id, None)


PREFETCH = PrefetchCache()
