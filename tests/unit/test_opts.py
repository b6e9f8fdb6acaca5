import pytest
from oslo_config import cfg

from cascade_agent.opts import controller_config_from_conf, register_cascade_opts


def build_conf():
    conf = cfg.ConfigOpts()
    register_cascade_opts(conf)
    conf(args=[])
    return conf


def test_defaults_match_yaml_defaults():
    settings = controller_config_from_conf(build_conf())

    assert settings.workers == 2
    assert settings.max_retries == 15
    assert settings.reconcile_timeout == pytest.approx(30.0)
    assert settings.backoff.base_delay == pytest.approx(0.005)
    assert settings.backoff.max_delay == pytest.approx(1000.0)


def test_overrides_are_applied():
    conf = build_conf()
    conf.set_override("workers", 6, group="cascade")
    conf.set_override("backoff_max_delay", 30.0, group="cascade")

    settings = controller_config_from_conf(conf)

    assert settings.workers == 6
    assert settings.backoff.max_delay == pytest.approx(30.0)


def test_inverted_backoff_bounds_are_rejected():
    conf = build_conf()
    conf.set_override("backoff_base_delay", 10.0, group="cascade")
    conf.set_override("backoff_max_delay", 1.0, group="cascade")

    with pytest.raises(ValueError):
        controller_config_from_conf(conf)
