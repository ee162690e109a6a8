"""Login, signup, logout and profile routes."""

from fastapi import APIRouter, Depends, Form, Request
from loguru import logger
from sqlalchemy.orm import Session

from . import crud
from .database import get_db
from .errors import (
    AuthenticationFailed,
    Conflict,
    StorageFailure,
    UserNotFound,
    ValidationFailed,
)
from .session import (
    SessionContext,
    SessionUser,
    get_session,
    redirect_if_authenticated,
    require_authenticated,
)
from .templating import redirect_with, render, safe_return_path

router = APIRouter(prefix="/auth", tags=["auth"])

MIN_USERNAME_LENGTH = 3
MIN_PASSWORD_LENGTH = 6

LOGIN_ERRORS = {
    "auth_required": "Please log in to access that page.",
    "invalid_credentials": "Invalid username or password.",
    "user_not_found": "No account found with that username.",
    "server_error": "Something went wrong on our end. Please try again.",
}

SIGNUP_ERRORS = {
    "username_taken": "That username is already taken. Please choose another.",
    "password_mismatch": "Passwords do not match.",
    "invalid_input": "Please fill in all required fields.",
    "username_too_short": (
        f"Username must be at least {MIN_USERNAME_LENGTH} characters long."
    ),
    "password_too_short": (
        f"Password must be at least {MIN_PASSWORD_LENGTH} characters long."
    ),
    "server_error": "Something went wrong on our end. Please try again.",
}


def validate_signup(username: str, password: str, confirm_password: str) -> str:
    """
    Check the signup form.

    Args:
        username (str): Requested username.
        password (str): Chosen password.
        confirm_password (str): Password typed a second time.

    Raises:
        ValidationFailed: With ``reason`` set to one of the SIGNUP_ERRORS keys.

    Returns:
        str: The trimmed username.
    """
    username = (username or "").strip()
    if not username or not password or not confirm_password:
        raise ValidationFailed(SIGNUP_ERRORS["invalid_input"], "invalid_input")
    if len(username) < MIN_USERNAME_LENGTH:
        raise ValidationFailed(
            SIGNUP_ERRORS["username_too_short"], "username_too_short"
        )
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailed(
            SIGNUP_ERRORS["password_too_short"], "password_too_short"
        )
    if password != confirm_password:
        raise ValidationFailed(SIGNUP_ERRORS["password_mismatch"], "password_mismatch")
    return username


@router.get("/login", dependencies=[Depends(redirect_if_authenticated)])
def login_page(request: Request, error: str | None = None, username: str = ""):
    """Show the login form."""
    return render(
        request,
        "login.html",
        title="Login",
        error=LOGIN_ERRORS.get(error or ""),
        username=username,
    )


@router.post("/login", dependencies=[Depends(redirect_if_authenticated)])
def login(
    username: str = Form(""),
    password: str = Form(""),
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Check credentials and attach the identity to the session."""

    if not username or not password:
        return redirect_with(
            "/auth/login", error="invalid_credentials", username=username
        )

    logger.info(f"Login attempt for username: {username}")
    try:
        user = crud.authenticate(db, username, password)
    except UserNotFound:
        logger.info(f"User not found: {username}")
        return redirect_with("/auth/login", error="user_not_found", username=username)
    except AuthenticationFailed:
        logger.info(f"Invalid password for user: {username}")
        return redirect_with(
            "/auth/login", error="invalid_credentials", username=username
        )
    except StorageFailure:
        return redirect_with("/auth/login", error="server_error")

    identity = session.login(user)
    logger.info(f"User logged in: {identity.username}")

    return_to = safe_return_path(session.pop("return_to"))
    return redirect_with(return_to, success=f"Welcome back, {identity.username}!")


@router.get("/signup", dependencies=[Depends(redirect_if_authenticated)])
def signup_page(request: Request, error: str | None = None, username: str = ""):
    """Show the signup form."""
    return render(
        request,
        "signup.html",
        title="Sign Up",
        error=SIGNUP_ERRORS.get(error or ""),
        username=username,
    )


@router.post("/signup", dependencies=[Depends(redirect_if_authenticated)])
def signup(
    username: str = Form(""),
    password: str = Form(""),
    confirm_password: str = Form(""),
    session: SessionContext = Depends(get_session),
    db: Session = Depends(get_db),
):
    """Register a new user and log them in."""

    logger.info(f"Signup attempt for username: {username}")
    try:
        username = validate_signup(username, password, confirm_password)
        user = crud.create_user(db, username, password)
    except ValidationFailed as exc:
        return redirect_with("/auth/signup", error=exc.reason, username=username)
    except Conflict:
        return redirect_with("/auth/signup", error="username_taken", username=username)
    except StorageFailure:
        return redirect_with("/auth/signup", error="server_error", username=username)

    session.login(user)
    return redirect_with(
        "/",
        success=(
            "Account created successfully! "
            f"Welcome to Contact Manager, {user.username}!"
        ),
    )


@router.api_route("/logout", methods=["GET", "POST"])
def logout(session: SessionContext = Depends(get_session)):
    """Destroy the session."""
    user = session.user
    session.destroy()
    logger.info(f"User logged out: {user.username if user else 'anonymous'}")
    return redirect_with("/", info="You have been logged out successfully.")


@router.get("/profile")
def profile(request: Request, user: SessionUser = Depends(require_authenticated)):
    """Show the logged-in user's profile."""
    return render(request, "profile.html", title="Profile", user=user)
