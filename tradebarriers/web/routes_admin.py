"""
Admin Routes.

Forms for: agreements (create, edit, delete), themes (create, rename,
delete) and the admin password.

The access token lives in an httponly cookie. An invalid or expired token
clears the cookie and sends the browser back to the login page. Every
form post except login and logout must echo the CSRF cookie in a hidden
csrf_token field.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import ValidationError as PydanticValidationError

from tradebarriers.core.errors import TrackerError, ValidationError
from tradebarriers.observability import get_logger, get_metrics
from tradebarriers.schemas import (
    AgreementInput,
    AgreementStatus,
    JurisdictionName,
    JurisdictionStatus,
    ThemeInput,
    generate_jurisdictions,
)
from tradebarriers.web.auth import (
    CSRF_COOKIE,
    CSRF_FORM_FIELD,
    AuthBackendError,
    AuthError,
    check_rate_limit,
    clear_rate_limit,
    clear_token_cookie_response,
    generate_csrf_token,
    get_client_ip,
    record_login_attempt,
    set_csrf_cookie,
    set_token_cookie_response,
    token_from_request,
)
from tradebarriers.web.deps import check_csrf, current_user, get_auth, get_service, get_templates


router = APIRouter(prefix="/admin", tags=["admin"], include_in_schema=False)
logger = get_logger(__name__)

# Blank history rows offered on the agreement form
EXTRA_HISTORY_ROWS = 2


def _redirect(url: str, **params: str) -> RedirectResponse:
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url=url, status_code=303)


def _to_login() -> RedirectResponse:
    return clear_token_cookie_response(_redirect("/admin/login"))


def _page(request: Request, name: str, context: dict, status_code: int = 200):
    """Render an admin page with the CSRF token its forms must post back."""
    existing = request.cookies.get(CSRF_COOKIE)
    csrf_token = existing or generate_csrf_token()
    resp = get_templates(request).TemplateResponse(
        request,
        name,
        {**context, "csrf_token": csrf_token},
        status_code=status_code,
    )
    if not existing:
        set_csrf_cookie(resp, csrf_token)
    return resp


def _form_context(values: dict[str, Any], themes, error: str | None = None) -> dict:
    history = list(values.get("agreement_history") or [])
    history += [{"status": "", "date_entered": ""}] * EXTRA_HISTORY_ROWS
    by_name = {j["name"]: j for j in values.get("jurisdictions") or []}
    return {
        "values": values,
        "history_rows": history,
        "jurisdiction_rows": [
            {"name": name.value, "record": by_name.get(name.value)}
            for name in JurisdictionName
        ],
        "themes": themes,
        "statuses": list(AgreementStatus),
        "jurisdiction_statuses": list(JurisdictionStatus),
        "error": error,
    }


def agreement_values_from_form(form) -> dict[str, Any]:
    """
    Turn the posted agreement form into a snake_case dict.

    Jurisdictions are posted as jurisdiction_status__<Name> and
    jurisdiction_notes__<Name>; only those with include__<Name> set are kept.
    Existing jurisdiction history round-trips through hidden
    jurisdiction_history__<Name> inputs holding "status|date".
    """
    jurisdictions = []
    for name in JurisdictionName:
        if not form.get(f"include__{name.value}"):
            continue
        history = []
        for raw in form.getlist(f"jurisdiction_history__{name.value}"):
            status, _, entered = raw.partition("|")
            if status and entered:
                history.append({"status": status, "date_entered": entered})
        jurisdictions.append({
            "name": name.value,
            "status": form.get(f"jurisdiction_status__{name.value}") or JurisdictionStatus.UNKNOWN.value,
            "notes": form.get(f"jurisdiction_notes__{name.value}") or "",
            "jurisdiction_history": history,
        })

    agreement_history = [
        {"status": status, "date_entered": entered}
        for status, entered in zip(form.getlist("history_status"), form.getlist("history_date"))
        if status and entered
    ]

    return {
        "title": form.get("title") or "",
        "summary": form.get("summary") or "",
        "description": form.get("description") or "",
        "status": form.get("status") or None,
        "deadline": form.get("deadline") or None,
        "source_url": form.get("source_url") or None,
        "launch_date": form.get("launch_date") or None,
        "theme": form.get("theme") or None,
        "jurisdictions": jurisdictions,
        "agreement_history": agreement_history,
    }


def parse_agreement_values(values: dict[str, Any]) -> AgreementInput:
    try:
        return AgreementInput.model_validate(values)
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid form input: {problems}") from e


# ============================================================
# LOGIN
# ============================================================

@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, error: str | None = None):
    return get_templates(request).TemplateResponse(
        request,
        "admin/login.html",
        {"error": error},
    )


@router.post("/login")
def login_post(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
):
    templates = get_templates(request)
    client_ip = get_client_ip(request)

    is_allowed, retry_after = check_rate_limit(client_ip)
    if not is_allowed:
        logger.warning("Login rate limited", client_ip=client_ip)
        return templates.TemplateResponse(
            request,
            "admin/login.html",
            {"error": f"Too many login attempts. Try again in {retry_after} seconds."},
            status_code=429,
        )

    record_login_attempt(client_ip)
    try:
        session = get_auth(request).sign_in(email, password)
    except AuthBackendError as e:
        logger.error("Auth service failed during admin login", client_ip=client_ip, error=e.message)
        return templates.TemplateResponse(
            request,
            "admin/login.html",
            {"error": e.message, "email": email},
            status_code=e.status_code,
        )
    except AuthError as e:
        get_metrics().record_login(success=False)
        logger.warning("Failed admin login", email=email, client_ip=client_ip)
        return templates.TemplateResponse(
            request,
            "admin/login.html",
            {"error": e.message, "email": email},
            status_code=e.status_code,
        )

    clear_rate_limit(client_ip)
    get_metrics().record_login(success=True)
    return set_token_cookie_response(_redirect("/admin"), session)


@router.post("/logout")
def logout():
    return _to_login()


# ============================================================
# DASHBOARD
# ============================================================

@router.get("", response_class=HTMLResponse)
def admin_home(request: Request, msg: str | None = None, error: str | None = None):
    user = current_user(request)
    if user is None:
        return _to_login()

    service = get_service(request)
    return _page(
        request,
        "admin/dashboard.html",
        {
            "user": user,
            "agreements": service.list_agreements(),
            "themes": service.list_themes(),
            "msg": msg,
            "error": error,
        },
    )


# ============================================================
# AGREEMENTS
# ============================================================

@router.get("/agreements/new", response_class=HTMLResponse)
def new_agreement_page(request: Request):
    if current_user(request) is None:
        return _to_login()

    values = {
        "status": AgreementStatus.AWAITING_SPONSORSHIP.value,
        "jurisdictions": [j.model_dump(mode="json") for j in generate_jurisdictions()],
        "agreement_history": [],
    }
    return _page(
        request,
        "admin/agreement_form.html",
        {
            **_form_context(values, get_service(request).list_themes()),
            "action": "/admin/agreements/new",
            "heading": "Add Agreement",
        },
    )


@router.post("/agreements/new")
async def new_agreement_post(request: Request):
    if current_user(request) is None:
        return _to_login()

    service = get_service(request)
    form = await request.form()
    check_csrf(request, form.get(CSRF_FORM_FIELD))
    values = agreement_values_from_form(form)
    try:
        agreement = service.create_agreement(parse_agreement_values(values))
    except ValidationError as e:
        return _page(
            request,
            "admin/agreement_form.html",
            {
                **_form_context(values, service.list_themes(), error=e.message),
                "action": "/admin/agreements/new",
                "heading": "Add Agreement",
            },
            status_code=400,
        )
    return _redirect("/admin", msg=f"Created: {agreement.title}")


@router.get("/agreements/{agreement_id}/edit", response_class=HTMLResponse)
def edit_agreement_page(request: Request, agreement_id: str):
    if current_user(request) is None:
        return _to_login()

    service = get_service(request)
    agreement = service.get_agreement(agreement_id)
    values = agreement.model_dump(mode="json")
    values["agreement_history"] = [
        h.model_dump(mode="json") for h in agreement.sorted_history()
    ]
    return _page(
        request,
        "admin/agreement_form.html",
        {
            **_form_context(values, service.list_themes()),
            "action": f"/admin/agreements/{agreement_id}/edit",
            "heading": "Edit Agreement",
        },
    )


@router.post("/agreements/{agreement_id}/edit")
async def edit_agreement_post(request: Request, agreement_id: str):
    if current_user(request) is None:
        return _to_login()

    service = get_service(request)
    form = await request.form()
    check_csrf(request, form.get(CSRF_FORM_FIELD))
    values = agreement_values_from_form(form)
    try:
        agreement = service.update_agreement(agreement_id, parse_agreement_values(values))
    except ValidationError as e:
        return _page(
            request,
            "admin/agreement_form.html",
            {
                **_form_context(values, service.list_themes(), error=e.message),
                "action": f"/admin/agreements/{agreement_id}/edit",
                "heading": "Edit Agreement",
            },
            status_code=400,
        )
    return _redirect("/admin", msg=f"Updated: {agreement.title}")


@router.post("/agreements/{agreement_id}/delete")
def delete_agreement_post(request: Request, agreement_id: str, csrf_token: str = Form("")):
    if current_user(request) is None:
        return _to_login()
    check_csrf(request, csrf_token)

    try:
        get_service(request).delete_agreement(agreement_id)
    except TrackerError as e:
        return _redirect("/admin", error=e.message)
    return _redirect("/admin", msg="Agreement deleted")


# ============================================================
# THEMES
# ============================================================

@router.post("/themes")
def create_theme_post(request: Request, name: str = Form(""), csrf_token: str = Form("")):
    if current_user(request) is None:
        return _to_login()
    check_csrf(request, csrf_token)

    try:
        theme = get_service(request).create_theme(ThemeInput(name=name))
    except TrackerError as e:
        return _redirect("/admin", error=e.message)
    return _redirect("/admin", msg=f"Theme added: {theme.name}")


@router.post("/themes/{theme_id}/rename")
def rename_theme_post(
    request: Request,
    theme_id: str,
    name: str = Form(""),
    csrf_token: str = Form(""),
):
    if current_user(request) is None:
        return _to_login()
    check_csrf(request, csrf_token)

    try:
        theme = get_service(request).rename_theme(theme_id, ThemeInput(name=name))
    except TrackerError as e:
        return _redirect("/admin", error=e.message)
    return _redirect("/admin", msg=f"Theme renamed: {theme.name}")


@router.post("/themes/{theme_id}/delete")
def delete_theme_post(request: Request, theme_id: str, csrf_token: str = Form("")):
    if current_user(request) is None:
        return _to_login()
    check_csrf(request, csrf_token)

    try:
        get_service(request).delete_theme(theme_id)
    except TrackerError as e:
        return _redirect("/admin", error=e.message)
    return _redirect("/admin", msg="Theme deleted")


# ============================================================
# PASSWORD
# ============================================================

@router.get("/password", response_class=HTMLResponse)
def password_page(request: Request):
    user = current_user(request)
    if user is None:
        return _to_login()
    return _page(
        request,
        "admin/password.html",
        {"user": user, "error": None},
    )


@router.post("/password")
def password_post(
    request: Request,
    password: str = Form(""),
    confirm: str = Form(""),
    csrf_token: str = Form(""),
):
    user = current_user(request)
    if user is None:
        return _to_login()
    check_csrf(request, csrf_token)

    error = None
    if password != confirm:
        error = "Passwords do not match"
    else:
        try:
            get_auth(request).update_password(token_from_request(request), password)
        except (TrackerError, AuthError) as e:
            error = e.message

    if error:
        return _page(
            request,
            "admin/password.html",
            {"user": user, "error": error},
            status_code=400,
        )
    return _redirect("/admin", msg="Password updated")
