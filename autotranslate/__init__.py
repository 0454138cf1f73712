"""Keep translated string files in sync with a source-language strings file."""
