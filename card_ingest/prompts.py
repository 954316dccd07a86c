IMAGE_PROMPT = """
Flash-card illustration for the vocabulary item "{subject}".
One cohesive scene with one clear focal subject, simple background,
soft natural lighting. Absolutely no text, captions, letters, logos or watermarks.
""".strip()
