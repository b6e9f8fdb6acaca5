"""oslo.config options for hosting the cascade controller in another agent.

Services that already load their settings through oslo.config can register
these options and build the controller settings from them instead of
shipping a separate YAML file.
"""

from oslo_config import cfg

from .config import BackoffConfig, ControllerConfig

GROUP = 'cascade'

cascade_opts = [
    cfg.IntOpt('workers',
               default=2,
               min=1,
               help='Number of parallel reconcile workers.'),
    cfg.IntOpt('max_retries',
               default=15,
               min=0,
               help='Requeue a failing configuration resource at most this '
                    'many times before dropping it until its next change.'),
    cfg.FloatOpt('reconcile_timeout',
                 default=30.0,
                 help='Seconds a single reconcile pass may take before it is '
                      'cancelled and retried.'),
    cfg.FloatOpt('backoff_base_delay',
                 default=0.005,
                 help='Initial retry delay in seconds; doubled per failure.'),
    cfg.FloatOpt('backoff_max_delay',
                 default=1000.0,
                 help='Upper bound for the retry delay in seconds.'),
]


def register_cascade_opts(conf=None):
    """Register the cascade options, by default on the global ``cfg.CONF``."""
    conf = conf if conf is not None else cfg.CONF
    conf.register_opts(cascade_opts, group=GROUP)
    return conf


def controller_config_from_conf(conf=None):
    """Build a :class:`ControllerConfig` from registered oslo.config options."""
    conf = conf if conf is not None else cfg.CONF
    group = conf[GROUP]
    if group.backoff_max_delay < group.backoff_base_delay:
        raise ValueError('backoff_max_delay must not be below '
                         'backoff_base_delay')
    return ControllerConfig(
        workers=group.workers,
        max_retries=group.max_retries,
        reconcile_timeout=group.reconcile_timeout,
        backoff=BackoffConfig(
            base_delay=group.backoff_base_delay,
            max_delay=group.backoff_max_delay,
        ),
    )
