from datetime import date, datetime


def today() -> date:
    return datetime.utcnow().date()


def utcnow() -> datetime:
    return datetime.utcnow()


# FastAPI dependencies; tests swap these through app.dependency_overrides
def get_today() -> date:
    return today()


def get_now() -> datetime:
    return utcnow()
