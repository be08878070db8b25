from app.core.errors import Conflict, NotFound, InvalidToken

class DropNotFound(NotFound):
    def __init__(self, drop_id: str):
        super().__init__("Drop not found")
        self.drop_id = drop_id

# ---- Claim refusals, one per precondition ----

class DropEnded(Conflict):
    def __init__(self):
        super().__init__("Drop has ended")

class DropNotStarted(Conflict):
    def __init__(self):
        super().__init__("Drop has not started yet")

class DropExpired(Conflict):
    def __init__(self):
        super().__init__("Drop has expired")

class DropSoldOut(Conflict):
    def __init__(self):
        super().__init__("No more claims available")

class AlreadyClaimed(Conflict):
    def __init__(self):
        super().__init__("Already claimed")

# ---- Download ----

class TokenRequired(InvalidToken):
    def __init__(self):
        super().__init__("Token required")

class TokenRejected(InvalidToken):
    def __init__(self):
        super().__init__("Invalid token")

class DropContentGone(NotFound):
    def __init__(self):
        super().__init__("Drop content not available")
