import pytest

from app.answer_classification import AnswerKind, AnsweredBy


@pytest.mark.parametrize(
    "raw, kind",
    [
        ("human", AnswerKind.HUMAN),
        ("machine_end_beep", AnswerKind.MACHINE_BEEP),
        ("machine_end_silence", AnswerKind.MACHINE_SILENCE),
        ("machine_end_other", AnswerKind.MACHINE_OTHER),
        ("unknown", AnswerKind.UNKNOWN),
        ("fax", AnswerKind.FAX),
        ("machine_start", AnswerKind.UNRECOGNIZED),
        (None, AnswerKind.UNRECOGNIZED),
    ],
)
def test_decode(raw, kind):
    assert AnsweredBy.decode(raw).kind is kind


def test_predicates():
    assert AnsweredBy.decode("human").is_human
    assert AnsweredBy.decode("machine_end_silence").is_machine
    assert not AnsweredBy.decode("fax").is_machine
    assert AnsweredBy.decode("unknown").is_unknown


def test_unrecognized_keeps_raw_value():
    answered = AnsweredBy.decode(" machine_start ")

    assert answered.raw == "machine_start"
    assert str(answered) == "machine_start"
    assert str(AnsweredBy.decode(None)) == "unrecognized"
