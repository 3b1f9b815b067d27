"""Command resolution.

The intent layer converts an English post that mentions the bot into a strict `ParsedCommand` (or a
structured `CommandError`), which is then executed against the challenge lifecycle.
"""
