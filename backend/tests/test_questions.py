import json

import pytest
import requests

from trivia.models import RecentQuestion
from trivia.services.games.errors import QuestionSourceError
from trivia.services.games.question_bank import BANK, FALLBACK_QUESTIONS
from trivia.services.games.questions import (
    PrefetchCache,
    Question,
    QuestionGenerator,
    QuestionProvider,
    difficulty_for,
    fallback_question,
)

GOOD = {'question': 'Which bird is on the fourth day of Christmas?',
        'answers': ['Hens', 'Calling birds', 'Geese', 'Swans'], 'correct': 1, 'difficulty': 'medium'}


class FakeResponse:
    def __init__(self, body, status=200):
        self.body = body
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f'{self.status_code} error')

    def json(self):
        return self.body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.calls.append({'url': url, 'json': json, 'headers': headers, 'timeout': timeout})
        if self.error:
            raise self.error
        return self.response


def _completion(content):
    return FakeResponse({'choices': [{'message': {'content': content}}]})


def _generator(session):
    return QuestionGenerator('http://questions.test/v1/chat', 'key-123', 'test-model', session=session)


def test_question_payload_validation():
    assert Question.from_payload(GOOD, source='bank').answers[1] == 'Calling birds'
    bad_payloads = [
        None,
        dict(GOOD, answers=['a', 'b', 'c']),
        dict(GOOD, correct=4),
        dict(GOOD, correct=True),
        dict(GOOD, question='  '),
        dict(GOOD, answers=['a', 'b', '', 'd']),
    ]
    for payload in bad_payloads:
        with pytest.raises(QuestionSourceError):
            Question.from_payload(payload, source='generator')


def test_unknown_difficulty_defaults():
    question = Question.from_payload(dict(GOOD, difficulty='impossible'), source='generator', default_difficulty='hard')
    assert question.difficulty == 'hard'


def test_difficulty_rotation():
    assert [difficulty_for(n) for n in range(5)] == ['easy', 'medium', 'hard', 'medium', 'very_hard']
    assert difficulty_for(10) == 'easy'


def test_generate_parses_fenced_json():
    session = FakeSession(_completion('```json\n' + json.dumps(GOOD) + '\n```'))
    question = _generator(session).generate(2, avoid=[('Old question?', 'Old answer')])
    assert question.correct == 1
    assert question.source == 'generator'
    call = session.calls[0]
    assert call['headers']['Authorization'] == 'Bearer key-123'
    prompt = call['json']['messages'][1]['content']
    assert 'HARD' in prompt
    assert 'Old question?' in prompt and 'Old answer' in prompt


@pytest.mark.parametrize('session', [
    FakeSession(error=requests.Timeout('slow')),
    FakeSession(error=requests.ConnectionError('down')),
    FakeSession(FakeResponse({}, status=503)),
    FakeSession(FakeResponse({'choices': []})),
    FakeSession(_completion('not json at all')),
])
def test_generate_failures_raise_source_error(session):
    with pytest.raises(QuestionSourceError):
        _generator(session).generate(0)


def test_provider_bank_and_fallback(flask_app):
    provider = QuestionProvider(None)
    assert provider.get('bank', 0).question == BANK[0]['question']
    # past the end of the bank
    assert provider.get('bank', len(BANK)).source == 'fallback'
    # no generator configured
    question = provider.get('generator', 5)
    assert question.question == FALLBACK_QUESTIONS[5 % len(FALLBACK_QUESTIONS)]['question']
    provider.fallback_enabled = False
    assert provider.get('generator', 5) is None


def test_fallback_is_deterministic():
    assert fallback_question(1) == fallback_question(1 + len(FALLBACK_QUESTIONS))


def test_generated_questions_feed_the_avoid_list(flask_app):
    session = FakeSession(_completion(json.dumps(GOOD)))
    provider = QuestionProvider(_generator(session), keep_recent=2)
    for n in range(3):
        provider.get('generator', n)
    assert RecentQuestion.query.count() == 2
    assert provider.avoid_list()[0] == (GOOD['question'], 'Calling birds')
    assert 'Calling birds' in session.calls[-1]['json']['messages'][1]['content']


def test_prefetch_cache_is_keyed_by_question_index():
    cache = PrefetchCache()
    cache.store(7, 3, fallback_question(0))
    assert cache.take(7, 2) is None
    assert cache.has(7, 3)
    assert cache.take(7, 3) == fallback_question(0)
    assert cache.take(7, 3) is None


def test_prefetch_cache_keeps_the_later_question():
    cache = PrefetchCache()
    cache.store(7, 3, fallback_question(3))
    cache.store(7, 2, fallback_question(2))
    assert not cache.has(7, 2)
    assert cache.take(7, 3) == fallback_question(3)
    cache.store(7, 4, fallback_question(4))
    assert cache.has(7, 4)
