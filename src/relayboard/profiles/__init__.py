from relayboard.profiles.cache import ProfileCache, ProfileEntry, parse_profile

__all__ = ["ProfileCache", "ProfileEntry", "parse_profile"]
