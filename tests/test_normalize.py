"""Tests for text normalization and the bot-mention gate."""

from __future__ import annotations

from fitbounty.intent.normalize import mentions_bot, normalize_text


def test_lowercases_trims_and_collapses_whitespace() -> None:
    assert normalize_text("  I Have   To\tDo 20\nPushups  ") == "i have to do 20 pushups"


def test_expands_contractions_including_typographic_apostrophe() -> None:
    assert normalize_text("If I don't do it") == "if i do not do it"
    assert normalize_text("I won’t stop") == "i will not stop"
    assert normalize_text("I'll do 10 squats, I'm sure") == "i will do 10 squats, i am sure"
    assert normalize_text("I can't") == "i cannot"


def test_collapses_separators_and_sentence_punctuation() -> None:
    assert normalize_text("done; next") == "done, next"
    assert normalize_text("go!!! really?! ok...") == "go. really. ok."


def test_preserves_mentions_and_numbers() -> None:
    assert normalize_text("Pay @Alice 1000 SATS @FitBounty") == "pay @alice 1000 sats @fitbounty"


def test_empty_input() -> None:
    assert normalize_text("") == ""
    assert normalize_text(None) == ""  # type: ignore[arg-type]


def test_mention_gate_accepts_close_spellings() -> None:
    assert mentions_bot("hello @fitbounty")
    assert mentions_bot("hello @fit_bounty")
    assert mentions_bot("hello @Fit-Bounty")
    assert not mentions_bot("hello @alice")
    assert not mentions_bot("fitbounty without the at sign")
