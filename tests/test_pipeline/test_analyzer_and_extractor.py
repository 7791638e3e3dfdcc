# tests/test_pipeline/test_analyzer_and_extractor.py

import json
import random

import pytest

from app.core.exceptions import ExtractionError
from app.core.storage import LocalMediaStorage
from app.schemas.enums import VerdictKind
from app.services.analyzer import GENERIC_FLAG_REASON, KeywordAnalyzer, load_analyzer
from app.services.extractor import FFprobeExtractor, parse_ffprobe_output, parse_frame_rate


# ─────────────────────────────────────────────────────────────
# Analyzer
# ─────────────────────────────────────────────────────────────

@pytest.mark.anyio
async def test_keyword_match_is_case_insensitive_and_first_term_wins():
    analyzer = KeywordAnalyzer(["sensitive", "nsfw"], flag_rate=0.0, delay_seconds=0)

    verdict = await analyzer.classify("My_NSFW_and_Sensitive_clip.MOV")

    assert verdict.kind == VerdictKind.FLAGGED
    assert verdict.reason == 'Disallowed term detected: "sensitive"'


@pytest.mark.anyio
async def test_keyword_reason_wins_over_certain_random_flag():
    analyzer = KeywordAnalyzer(["nsfw"], flag_rate=1.0, rng=random.Random(0), delay_seconds=0)

    verdict = await analyzer.classify("late-night-NSFW.mp4")

    assert verdict.flagged
    assert verdict.reason == 'Disallowed term detected: "nsfw"'


@pytest.mark.anyio
async def test_clean_name_is_safe_when_flag_rate_zero():
    analyzer = KeywordAnalyzer(["nsfw"], flag_rate=0.0, delay_seconds=0)
    verdict = await analyzer.classify("family-picnic.mp4")
    assert verdict.kind == VerdictKind.SAFE
    assert verdict.reason is None


@pytest.mark.anyio
async def test_flag_rate_one_always_flags_with_generic_reason():
    analyzer = KeywordAnalyzer([], flag_rate=1.0, rng=random.Random(0), delay_seconds=0)
    verdict = await analyzer.classify("anything.mp4")
    assert verdict.flagged
    assert verdict.reason == GENERIC_FLAG_REASON


def test_load_analyzer_accepts_colon_and_dotted_paths():
    assert isinstance(load_analyzer("app.services.analyzer:KeywordAnalyzer"), KeywordAnalyzer)
    assert isinstance(load_analyzer("app.services.analyzer.KeywordAnalyzer"), KeywordAnalyzer)


# ─────────────────────────────────────────────────────────────
# ffprobe parsing
# ─────────────────────────────────────────────────────────────

FFPROBE_DOC = {
    "streams": [
        {"codec_type": "audio", "codec_name": "aac"},
        {
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1280,
            "height": 720,
            "r_frame_rate": "30000/1001",
        },
    ],
    "format": {"duration": "63.250000", "bit_rate": "2500000", "size": "19765625"},
}


def test_parse_ffprobe_output_maps_first_streams():
    probe = parse_ffprobe_output(json.dumps(FFPROBE_DOC))

    assert probe.duration == pytest.approx(63.25)
    assert (probe.width, probe.height) == (1280, 720)
    assert probe.bitrate == 2_500_000
    assert probe.codec == "h264"
    assert probe.audio_codec == "aac"
    assert probe.frame_rate == pytest.approx(29.97)
    assert probe.size == 19_765_625

    columns = probe.to_columns()
    assert columns["duration_seconds"] == pytest.approx(63.25)
    assert "size" not in columns and "duration" not in columns


@pytest.mark.parametrize(
    "raw, expected",
    [("25/1", 25.0), ("30000/1001", 29.97), ("0/0", None), ("", None), ("garbage", None), (None, None)],
)
def test_parse_frame_rate(raw, expected):
    assert parse_frame_rate(raw) == expected


@pytest.mark.parametrize("raw", ["not json", "[]", "{}"])
def test_parse_ffprobe_output_rejects_useless_documents(raw):
    with pytest.raises(ExtractionError):
        parse_ffprobe_output(raw)


@pytest.mark.anyio
async def test_ffprobe_extractor_reports_missing_asset(tmp_path):
    extractor = FFprobeExtractor(storage=LocalMediaStorage(tmp_path), binary="ffprobe")
    with pytest.raises(ExtractionError, match="stored asset not found"):
        await extractor.probe("tenant/artifact/missing.mp4")


@pytest.mark.anyio
async def test_ffprobe_extractor_reports_missing_binary(tmp_path):
    (tmp_path / "clip.mp4").write_bytes(b"\x00" * 16)
    extractor = FFprobeExtractor(storage=LocalMediaStorage(tmp_path), binary="definitely-not-ffprobe-xyz")
    with pytest.raises(ExtractionError, match="is not installed"):
        await extractor.probe("clip.mp4")
