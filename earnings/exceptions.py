class RateResolutionAmbiguous(Exception):
    """
    Raised when no commission tier can supply a rate. Only reachable when
    the caller hands the resolver an unusable platform default.
    """

    def __init__(self, message="No usable commission rate could be resolved"):
        self.message = message
        super().__init__(message)
