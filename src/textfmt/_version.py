"""Version information for textfmt."""

MAJOR = 0
MINOR = 2
PATCH = 0
PHASE = ""  # "", "alpha", "beta", "rc1", ...

__version__ = f"{MAJOR}.{MINOR}.{PATCH}"


def get_base_version():
    """Return MAJOR.MINOR.PATCH, with the phase appended if set."""
    base = f"{MAJOR}.{MINOR}.{PATCH}"
    if PHASE:
        return f"{base}-{PHASE}"
    return base


def get_pip_version():
    """Return a PEP 440 compatible version string."""
    base = f"{MAJOR}.{MINOR}.{PATCH}"
    if not PHASE:
        return base
    phase_map = {"alpha": "a0", "beta": "b0"}
    return base + phase_map.get(PHASE, PHASE)


DISPLAY_VERSION = get_base_version()
