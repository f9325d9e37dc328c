"""Process-wide settings instance.

Importing this module reads the environment (and `.env`) once. Code that only
needs to validate a configuration builds `CommonSettings` from
`qpaybridge.common.config_model` directly.
"""

from qpaybridge.common.config_model import CommonSettings


settings = CommonSettings()
