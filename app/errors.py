class ValidationError(Exception):
    """Raised when submitted post data fails validation.

    ``errors`` maps each failing field to its list of messages.
    """

    def __init__(self, errors: dict[str, list[str]]):
        super().__init__("Invalid post data")
        self.errors = errors


class NotFound(Exception):
    def __init__(self, post_id):
        super().__init__(f"Post {post_id} not found")
        self.post_id = post_id


class StorageFailure(Exception):
    pass
