"""Static catalog of clarifying questions, one per schema field.

Questions are ordered by ``priority``: the three core questions always come
before every supplementary one.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from vibecheck.models.conversation import Progress
from vibecheck.models.question import Choice, Question, QuestionOption, QuestionType
from vibecheck.schema_store import is_filled

if TYPE_CHECKING:
    from vibecheck.models.schema import EvaluationSchema

MIN_FUZZY_LENGTH = 2

_SKIP_LABEL = "Not sure yet / skip"

QUESTION_BANK: tuple[Question, ...] = (
    # --- Core ---
    Question(
        id="q1",
        field="idea.one_liner",
        question=(
            "In one sentence, what is the thing you want to build?\n\n"
            'For example: "a tool that drafts my weekly report" or '
            '"an app that tracks crypto prices".\n\n'
            "(Rough is fine, you can change it later.)"
        ),
        type=QuestionType.OPEN,
        priority=1,
        is_mvp=True,
    ),
    Question(
        id="q3",
        field="user.primary_user",
        question="Who is it mainly for?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="self", label="Mainly for myself", value="self"),
            QuestionOption(
                id="specific",
                label="A specific group (designers, students, a profession...)",
                value="specific group",
            ),
            QuestionOption(id="public", label="The general public", value="general public"),
            QuestionOption(id="skip", label=_SKIP_LABEL, value=""),
        ),
        priority=2,
        is_mvp=True,
    ),
    Question(
        id="q7",
        field="platform.form",
        question="What form should the product take?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="web", label="Web / Web App", value="web"),
            QuestionOption(id="mobile", label="Mobile App (iOS or Android)", value="ios"),
            QuestionOption(id="plugin", label="Browser plugin / desktop tool", value="plugin"),
            QuestionOption(id="cli", label="Command-line tool / script", value="cli"),
            QuestionOption(id="skip", label=_SKIP_LABEL, value="unknown"),
        ),
        priority=3,
        is_mvp=True,
    ),
    # --- Supplementary ---
    Question(
        id="q5",
        field="mvp.type",
        question="What does the product mainly do?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(
                id="content",
                label="Generates content for users (text, images, video...)",
                value="content_tool",
            ),
            QuestionOption(
                id="functional",
                label="Performs a concrete function (calculate, convert, automate...)",
                value="functional_tool",
            ),
            QuestionOption(
                id="ai",
                label="Wraps AI capabilities (calls an LLM, generates images...)",
                value="ai_tool",
            ),
            QuestionOption(id="other", label="Something else / not sure", value="other"),
        ),
        priority=4,
    ),
    Question(
        id="q8",
        field="preference.timeline",
        question="How soon would you like a usable version?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="7d", label="Within a week (quick validation)", value="7d"),
            QuestionOption(id="14d", label="About two weeks (basic features)", value="14d"),
            QuestionOption(id="30d", label="About a month (fairly complete)", value="30d"),
            QuestionOption(id="flexible", label="No rush / skip", value="flexible"),
        ),
        priority=5,
    ),
    Question(
        id="q2",
        field="idea.background",
        question="Mind sharing why you want to build this?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(
                id="self_need", label="I ran into this problem myself", value="own problem"
            ),
            QuestionOption(
                id="others_need", label="I saw other people need it", value="others' need"
            ),
            QuestionOption(
                id="opportunity",
                label="I think there is an opportunity here",
                value="market opportunity",
            ),
            QuestionOption(id="skip", label="Just want to try / skip", value=""),
        ),
        priority=6,
    ),
    Question(
        id="q4",
        field="user.usage_context",
        question="When would people typically use it?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(
                id="work", label="At work (efficiency, getting tasks done)", value="work"
            ),
            QuestionOption(
                id="life",
                label="In daily life (fun, journaling, organizing)",
                value="daily life",
            ),
            QuestionOption(
                id="specific",
                label="In a specific situation (travel, bedtime, commuting...)",
                value="specific situation",
            ),
            QuestionOption(id="skip", label=_SKIP_LABEL, value=""),
        ),
        priority=7,
    ),
    Question(
        id="q6",
        field="mvp.first_job",
        question=(
            "If the product could only do one thing, what should it do first?\n\n"
            '(For example: "produce a weekly report", "show today\'s exchange rate", '
            '"turn speech into text")'
        ),
        type=QuestionType.OPEN,
        priority=8,
    ),
    Question(
        id="q9",
        field="preference.priority",
        question="If you had to pick one, what matters most?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="fast", label="Speed: ship it first", value="ship_fast"),
            QuestionOption(
                id="stable", label="Stability: slower but fewer problems", value="stable_first"
            ),
            QuestionOption(
                id="cost", label="Cost: spend as little as possible", value="cost_first"
            ),
            QuestionOption(id="skip", label="All of them / not sure", value="unknown"),
        ),
        priority=9,
    ),
    Question(
        id="q10",
        field="constraints.api_or_data_dependency",
        question="Does the product need external data or services?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="none", label="No, it works on its own", value="none"),
            QuestionOption(
                id="possible",
                label="Possibly (calling an AI, fetching weather, exchange rates...)",
                value="possible",
            ),
            QuestionOption(
                id="confirmed", label="Definitely, and I know which one", value="confirmed"
            ),
            QuestionOption(id="skip", label=_SKIP_LABEL, value="unknown"),
        ),
        priority=10,
    ),
    Question(
        id="q11",
        field="constraints.privacy_level",
        question="Will the product handle users' private data?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="low", label="No personal information at all", value="low"),
            QuestionOption(
                id="medium", label="Some (nicknames, preferences...)", value="medium"
            ),
            QuestionOption(
                id="high",
                label="Sensitive data (payments, health, location...)",
                value="high",
            ),
            QuestionOption(id="skip", label=_SKIP_LABEL, value="unknown"),
        ),
        priority=11,
    ),
    Question(
        id="q12",
        field="problem.scenario",
        question=(
            "Can you give a concrete example? What problem do users hit today, "
            "and how do they deal with it?\n\n"
            '(For example: "every Friday I spend 2 hours on my weekly report '
            'and forget what I did")'
        ),
        type=QuestionType.OPEN,
        priority=12,
    ),
    Question(
        id="q13",
        field="problem.pain_level",
        question="How painful is this problem?",
        type=QuestionType.CHOICE,
        options=(
            QuestionOption(id="low", label="Mildly annoying, I can live with it", value="low"),
            QuestionOption(
                id="medium", label="Often hurts efficiency or mood", value="medium"
            ),
            QuestionOption(
                id="high", label="Very painful, worth paying to fix", value="high"
            ),
            QuestionOption(id="skip", label=_SKIP_LABEL, value="unknown"),
        ),
        priority=13,
    ),
)

_BY_ID: dict[str, Question] = {q.id: q for q in QUESTION_BANK}
_BY_FIELD: dict[str, Question] = {q.field: q for q in QUESTION_BANK}


def _ordered() -> list[Question]:
    return sorted(QUESTION_BANK, key=lambda q: (not q.is_mvp, q.priority))


def get_question(question_id: str) -> Question | None:
    return _BY_ID.get(question_id)


def get_question_for_field(field: str) -> Question | None:
    return _BY_FIELD.get(field)


def next_question(schema: EvaluationSchema) -> Question | None:
    """Return the highest-priority question whose field is still unfilled."""
    for question in _ordered():
        if not is_filled(schema, question.field):
            return question
    return None


def parse_answer_value(question: Question, answer: str) -> str:
    """Resolve a raw reply to the value stored in the schema.

    Choice replies are matched by option id, then label, then stored value,
    then 1-based index, then a case-insensitive substring of a label. Anything
    unresolved is kept as free text, since replies may come from speech
    transcription.
    """
    text = answer.strip()
    if question.type == QuestionType.OPEN or not question.options:
        return text

    options = question.options
    for attr in ("id", "label", "value"):
        for option in options:
            if getattr(option, attr) == text:
                return option.value

    if text.isdigit():
        index = int(text)
        if 1 <= index <= len(options):
            return options[index - 1].value

    if len(text) >= MIN_FUZZY_LENGTH:
        needle = text.casefold()
        for option in options:
            if needle in option.label.casefold():
                return option.value

    return text


def display_choices(question: Question) -> list[Choice]:
    """Catalog options as client-facing choices (empty for open questions)."""
    return [Choice(id=opt.id, text=opt.label) for opt in question.options]


def remaining_counts(schema: EvaluationSchema) -> dict[str, int]:
    mvp = optional = 0
    for question in QUESTION_BANK:
        if is_filled(schema, question.field):
            continue
        if question.is_mvp:
            mvp += 1
        else:
            optional += 1
    return {"mvp": mvp, "optional": optional, "total": mvp + optional}


def progress(schema: EvaluationSchema) -> Progress:
    mvp_questions = [q for q in QUESTION_BANK if q.is_mvp]
    supplementary = [q for q in QUESTION_BANK if not q.is_mvp]
    mvp_filled = sum(1 for q in mvp_questions if is_filled(schema, q.field))
    supp_filled = sum(1 for q in supplementary if is_filled(schema, q.field))
    total = len(QUESTION_BANK)
    return Progress(
        mvp_percent=round(100 * mvp_filled / len(mvp_questions)),
        total_percent=round(100 * (mvp_filled + supp_filled) / total),
        mvp_filled=mvp_filled,
        mvp_total=len(mvp_questions),
        supplementary_filled=supp_filled,
        supplementary_total=len(supplementary),
    )
