from fast_state.config import Config, Field, FieldHint, config_class


@config_class()
class LoadConfig(Config):
    require_complete: bool = Field(
        default=False,
        desc="Fail if some destination array (not excluded by the filter) did not receive any value.",
        hint=FieldHint.feature,
    )
    log_summary: bool = Field(
        default=True,
        desc="Log the number of loaded arrays and entries once the load succeeds.",
        hint=FieldHint.logging,
    )
