class UpstreamUnavailable(Exception):
    """A platform could not be reached or answered with an unusable payload."""


class PartialDetailUnavailable(Exception):
    """The per-problem detail lookup failed; the problem itself is still known."""


class IdentityNotFound(Exception):
    def __init__(self, identity: str):
        super().__init__(f"No profile for identity {identity!r}")
        self.identity = identity
