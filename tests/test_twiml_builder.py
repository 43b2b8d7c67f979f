from app.models import SpokenOutput, TurnAction, TurnDirective
from app.twiml_builder import (
    build_continue_twiml,
    build_directive_twiml,
    build_empty_twiml,
    build_error_twiml,
    build_hangup_twiml,
    build_reminder_twiml,
    build_retry_twiml,
    media_stream_url,
    sanitize_say_text,
)


def test_sanitize_say_text_escapes_and_collapses():
    assert sanitize_say_text("Take  <one>\n tablet & rest") == "Take &lt;one&gt; tablet &amp; rest"
    assert sanitize_say_text("\x00\x01") == "Sorry, I encountered an issue."
    assert sanitize_say_text("", fallback="Goodbye.") == "Goodbye."


def test_retry_twiml_shortens_timeout_and_bumps_counter():
    xml = build_retry_twiml(2)

    assert xml.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert 'speechTimeout="1"' in xml
    assert 'action="https://example.test/handle-speech?retry=2"' in xml
    assert 'actionOnEmptyResult="true"' in xml
    assert "<Say>If you're finished, you can hang up. Goodbye.</Say>" in xml
    assert xml.rstrip().endswith("<Hangup/>\n</Response>")


def test_continue_twiml_plays_audio_then_gathers():
    xml = build_continue_twiml(SpokenOutput(text="Great!", audio_url="https://example.test/audio/a.mpeg"))

    assert xml.index("<Play>https://example.test/audio/a.mpeg</Play>") < xml.index("<Gather")
    assert 'speechTimeout="2"' in xml
    assert 'maxSpeechTime="12"' in xml
    assert "handle-speech?retry=0" in xml
    assert "<Play>https://example.test/audio/beep.mpeg</Play></Gather>" in xml


def test_continue_twiml_says_text_without_audio():
    xml = build_continue_twiml(SpokenOutput(text="Aspirin is 81 milligrams."))

    assert "<Say>Aspirin is 81 milligrams.</Say>" in xml


def test_hangup_and_error_twiml():
    assert "<Say>Bye.</Say>\n    <Hangup/>" in build_hangup_twiml(SpokenOutput(text="Bye."))
    assert "<Say>An error occurred. Apologies. Goodbye.</Say>" in build_error_twiml()
    assert build_empty_twiml().endswith("<Response/>")


def test_directive_dispatch():
    retry = TurnDirective(action=TurnAction.RETRY, speak=SpokenOutput(text="Say again?"), next_retry_count=1)
    cont = TurnDirective(action=TurnAction.CONTINUE, speak=SpokenOutput(text="Sure."), next_retry_count=0)
    end = TurnDirective(action=TurnAction.TERMINATE, speak=SpokenOutput(text="Goodbye."))

    assert "retry=1" in build_directive_twiml(retry)
    assert "<Say>Say again?</Say>" in build_directive_twiml(retry)
    assert "<Gather" in build_directive_twiml(cont)
    assert "<Gather" not in build_directive_twiml(end)
    assert "<Hangup/>" in build_directive_twiml(end)


def test_reminder_twiml_starts_stream_with_call_sid():
    xml = build_reminder_twiml(
        "CA1",
        media_stream_url("abc.ngrok.app"),
        SpokenOutput(text="Reminder", audio_url="https://example.test/audio/r.mpeg"),
    )

    assert '<Start><Stream url="wss://abc.ngrok.app/live"><Parameter name="CallSid" value="CA1"/></Stream></Start>' in xml
    assert xml.index("<Start>") < xml.index("<Play>") < xml.index("<Gather")
    assert "<Hangup/>" not in xml

    with_fallback = build_reminder_twiml("CA1", "wss://h/live", SpokenOutput(text="Reminder"), fallback="Call back.")
    assert "<Say>Call back.</Say>\n    <Hangup/>" in with_fallback
