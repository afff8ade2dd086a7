"""Encoder family knowledge: profiles and version probing."""

from .profiles import (
    EncoderProfile, AomProfile, Rav1eProfile, SvtAv1Profile,
    AOM, RAV1E, SVT_AV1, PROFILES, resolve_profile, get_profile,
)
from .version_probe import EncoderInfo, probe_encoder, no_probe, UNKNOWN_VERSION

__all__ = [
    "EncoderProfile", "AomProfile", "Rav1eProfile", "SvtAv1Profile",
    "AOM", "RAV1E", "SVT_AV1", "PROFILES", "resolve_profile", "get_profile",
    "EncoderInfo", "probe_encoder", "no_probe", "UNKNOWN_VERSION",
]
