import pytest

from ratchet_ai.agent_core.runtime import AgentLoopConfig, LoopDetectionConfig, parse_duration


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (30, 30.0),
            (1.5, 1.5),
            ("45", 45.0),
            ("500ms", 0.5),
            ("30s", 30.0),
            ("30m", 1800.0),
            ("1h", 3600.0),
            ("1h30m", 5400.0),
            ("2m30s", 150.0),
            ("1.5h", 5400.0),
        ],
    )
    def test_valid(self, value, expected):
        assert parse_duration(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", ["", "abc", "10x", "m5", "5m garbage", True, None, [1]])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_duration(value)


class TestAgentLoopConfig:
    def test_defaults(self):
        cfg = AgentLoopConfig()
        assert cfg.max_iterations == 10
        assert cfg.approval_timeout == pytest.approx(1800.0)
        assert cfg.request_timeout == pytest.approx(3600.0)
        assert cfg.context.context_limit is None
        assert cfg.provider == ""

    def test_parses_step_mapping(self):
        cfg = AgentLoopConfig.model_validate(
            {
                "max_iterations": 3,
                "approval_timeout": "2m",
                "request_timeout": 15,
                "loop_detection": {"max_consecutive": 5},
                "context": {"compaction_threshold": 0.5, "context_limit": 1000},
                "provider": "anthropic",
                "unrelated_key": "ignored",
            }
        )
        assert cfg.max_iterations == 3
        assert cfg.approval_timeout == pytest.approx(120.0)
        assert cfg.request_timeout == pytest.approx(15.0)
        assert cfg.loop_detection.max_consecutive == 5
        assert cfg.context.context_limit == 1000
        assert cfg.provider == "anthropic"

    @pytest.mark.parametrize("value", [0, -3, None])
    def test_non_positive_iterations_fall_back(self, value):
        assert AgentLoopConfig(max_iterations=value).max_iterations == 10

    @pytest.mark.parametrize("value", [0, "0s", "", None, -5])
    def test_non_positive_timeouts_fall_back(self, value):
        cfg = AgentLoopConfig(approval_timeout=value, request_timeout=value)
        assert cfg.approval_timeout == pytest.approx(1800.0)
        assert cfg.request_timeout == pytest.approx(3600.0)

    def test_bad_duration_rejected(self):
        with pytest.raises(ValueError):
            AgentLoopConfig(approval_timeout="soon")

    def test_detector_config_normalizes_zeros(self):
        cfg = AgentLoopConfig.model_validate({"loop_detection": {"max_errors": 0, "max_alternating": 7}})
        detector_cfg = cfg.loop_detection.to_detector_config()
        assert detector_cfg == LoopDetectionConfig(max_consecutive=3, max_errors=2, max_alternating=7, max_no_progress=3)
