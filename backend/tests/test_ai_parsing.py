from models.clip import ReviewDisposition
from services.ai_parsing import clip_from_dict, parse_json_object, parse_review, parse_selected_clips


def test_fenced_json_is_parsed() -> None:
    text = '```json\n{"selected_clips": [{"start_time": 1, "end_time": 20}]}\n```'
    clips = parse_selected_clips(text)
    assert clips is not None
    assert [(c.start_time, c.end_time) for c in clips] == [(1.0, 20.0)]


def test_json_surrounded_by_prose_is_parsed() -> None:
    assert parse_json_object('Sure! Here it is: {"a": 1} Hope that helps.') == {"a": 1}


def test_garbage_returns_none() -> None:
    assert parse_json_object("no json here") is None
    assert parse_json_object("") is None
    assert parse_json_object("[1, 2, 3]") is None
    assert parse_selected_clips('{"something_else": []}') is None
    assert parse_review("{broken") is None


def test_clip_fields_are_clamped_and_rounded() -> None:
    clip = clip_from_dict(
        {
            "start_time": "12.346",
            "end_time": 40.987,
            "viral_score": 14,
            "confidence_score": 1.7,
            "user_compliance_score": -3,
            "hashtags": "#fyp",
            "platforms": ["tiktok"],
        }
    )
    assert clip is not None
    assert clip.start_time == 12.35
    assert clip.end_time == 40.99
    assert clip.viral_score == 10
    assert clip.confidence_score == 1.0
    assert clip.user_compliance_score == 1
    assert clip.hashtags == ["#fyp"]
    assert clip.target_platforms == ["tiktok"]


def test_clip_without_times_is_skipped() -> None:
    assert clip_from_dict({"caption": "no times"}) is None
    assert clip_from_dict("not a dict") is None


def test_review_dispositions_and_summary() -> None:
    text = """{
      "review_results": {
        "approved_clips": [{"start_time": 0, "end_time": 10}],
        "refined_clips": [{"start_time": 20, "end_time": 35}, {"start_time": 50, "end_time": 60}],
        "rejected_clips": [{"start_time": 70, "end_time": 80}],
        "review_summary": {"overall_quality_score": "8.5", "recommendations": ["tighten hooks"]}
      }
    }"""
    parsed = parse_review(text)
    assert parsed is not None
    reviewed, summary = parsed
    assert [r.disposition for r in reviewed] == [
        ReviewDisposition.APPROVED,
        ReviewDisposition.REFINED,
        ReviewDisposition.REFINED,
        ReviewDisposition.REJECTED,
    ]
    assert (summary.approved_count, summary.refined_count, summary.rejected_count) == (1, 2, 1)
    assert summary.overall_quality_score == 8.5
    assert summary.recommendations == ["tighten hooks"]


def test_non_finite_numbers_are_treated_as_missing() -> None:
    clips = parse_selected_clips(
        '{"selected_clips": ['
        '{"start_time": 1, "end_time": 20, "viral_score": NaN, "confidence_score": Infinity},'
        '{"start_time": 5, "end_time": Infinity}'
        "]}"
    )
    assert clips is not None
    assert len(clips) == 1
    assert clips[0].viral_score == 5
    assert clips[0].confidence_score == 0.5


def test_malformed_review_summary_is_tolerated() -> None:
    parsed = parse_review(
        '{"review_results": {"approved_clips": [{"start_time": 0, "end_time": 10}],'
        ' "review_summary": {"recommendations": 5, "overall_quality_score": NaN}}}'
    )
    assert parsed is not None
    _, summary = parsed
    assert summary.recommendations == []
    assert summary.overall_quality_score is None
