"""Exception types."""


class GoldilocksPoseidonError(Exception):
    """Base class for errors raised by this package."""


class ParamsError(GoldilocksPoseidonError, ValueError):
    """Poseidon parameter tables do not match the width/round parameters."""
