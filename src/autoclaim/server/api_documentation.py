TITLE = "Auto-Claim Engine"

SUMMARY = "Polls the clue queue and claims matching clues up to a limit"

TAGS_METADATA = [
    {
        "name": "auto-claim",
        "description": (
            "Session operations. **Start**, **stop** and **status** of the one"
            " auto-claim session the process runs."
        ),
    },
    {
        "name": "clue-queue",
        "description": (
            "Lookups against the clue queue on behalf of the settings UI. The queue"
            " credential is passed in the `X-Queue-Credential` header."
        ),
    },
]
