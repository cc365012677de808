class ProvisionError(RuntimeError):
    pass


class FeatureEnableError(ProvisionError):
    pass


class ResumptionTaskError(ProvisionError):
    pass


class AssetUnavailable(ProvisionError):
    pass


class LocaleConfigurationError(ProvisionError):
    pass


class FetchFailure(RuntimeError):
    pass
