"""Domain errors raised by the social graph services.

Every error carries a stable ``kind`` (used by callers to branch) and a
user-facing ``message``. Storage errors never leak their text through these.
"""


class SocialGraphError(Exception):
    kind = "SOCIAL_GRAPH_ERROR"
    message = "Something went wrong. Please try again."

    def __init__(self, message: str = None):
        self.message = message or self.message
        super().__init__(self.message)

    def __repr__(self):
        return f"<{type(self).__name__} kind={self.kind}>"


class NotAuthenticatedError(SocialGraphError):
    kind = "NOT_AUTHENTICATED"
    message = "Please sign in to continue."


class SelfReferenceError(SocialGraphError):
    kind = "SELF_REFERENCE"
    message = "You can't do that with your own account."


class DuplicateRequestError(SocialGraphError):
    kind = "DUPLICATE_REQUEST"
    message = "Friend request already sent."


class ReciprocalRequestError(SocialGraphError):
    kind = "RECIPROCAL_REQUEST"
    message = "This user has already sent you a friend request. Accept it to become friends."


class AlreadyFriendsError(SocialGraphError):
    kind = "ALREADY_FRIENDS"
    message = "You are already friends."


class RequestNotFoundError(SocialGraphError):
    kind = "REQUEST_NOT_FOUND"
    message = "This friend request is no longer available. It may have been answered or withdrawn."


class RelationshipConflictError(SocialGraphError):
    kind = "RELATIONSHIP_CONFLICT"
    message = "This relationship was changed at the same time by someone else. Refresh and try again."


class NotAuthorizedError(SocialGraphError):
    kind = "NOT_AUTHORIZED"
    message = "You don't have permission to do that."


class CommentNotFoundError(SocialGraphError):
    kind = "COMMENT_NOT_FOUND"
    message = "This comment is no longer available."


class ValidationError(SocialGraphError):
    kind = "VALIDATION_ERROR"
    message = "The request was not valid."
