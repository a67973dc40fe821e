API_PREFIX = "/api/v1/"

RESOURCE_TAGS = (
    ("auth/", "Authentication"),
    ("users/", "Users"),
    ("friends/", "Friends"),
    ("user/follow/", "Follow"),
    ("teams/", "Teams"),
    ("projects/", "Projects"),
    ("tasks/", "Tasks"),
    ("meetings/", "Meetings"),
    ("chats/", "Chats"),
    ("notifications/", "Notifications"),
    ("code-sessions/", "Code Sessions"),
    ("schema/", "Meta"),
)


def tag_for(path: str) -> str | None:
    if not path.startswith(API_PREFIX):
        return None
    rest = path[len(API_PREFIX) :]
    for prefix, tag in RESOURCE_TAGS:
        if rest.startswith(prefix):
            return tag
    return None


def group_tags(result, generator, request, public):
    """Postprocessing hook: one schema tag per collabhub resource."""
    for path, operations in result.get("paths", {}).items():
        tag = tag_for(path)
        if tag is None:
            continue
        for operation in operations.values():
            operation["tags"] = [tag]
    return result
