"""Account page API routes."""

from fastapi import APIRouter, Response, status

from src.api.deps import CurrentUser, Gateway, PageRegistry
from src.schemas.account import AccountPageState, FormValidity, PromptAnswer
from src.schemas.profile import ProfileDraftPatch
from src.services.account_page_service import AccountPageController, AccountPageRegistry

router = APIRouter(prefix="/account/page", tags=["account"])


async def _render(page: AccountPageController, registry: AccountPageRegistry, user: CurrentUser) -> AccountPageState:
    """Render the page, unmounting it once the account is gone."""
    state = page.state()
    if page.is_account_deleted:
        await registry.unmount(user.user_id)
    return state


@router.get(
    "",
    response_model=AccountPageState,
    summary="Open the account page",
    description="Mounts the account page on first use and returns its state.",
)
async def get_account_page(user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Open (or re-render) the current user's account page."""
    page = await registry.mount(user.user_id, gateway)
    return page.state()


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Close the account page",
    description="Discards the draft, any open prompt and any held credential.",
)
async def close_account_page(user: CurrentUser, registry: PageRegistry) -> Response:
    """Unmount the current user's account page."""
    await registry.unmount(user.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch(
    "/draft",
    response_model=AccountPageState,
    summary="Edit draft fields",
)
async def update_draft(data: ProfileDraftPatch, user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Apply field edits to the draft."""
    page = await registry.get(user.user_id, gateway)
    page.update_draft(data.changes())
    return page.state()


@router.put(
    "/validity",
    response_model=AccountPageState,
    summary="Report form validity",
)
async def set_form_validity(data: FormValidity, user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Record whether the rendered form validates."""
    page = await registry.get(user.user_id, gateway)
    page.set_form_valid(data.valid)
    return page.state()


@router.post(
    "/save",
    response_model=AccountPageState,
    summary="Save the profile",
    description="Saves the draft, or opens a password prompt first when the change requires it.",
)
async def save_profile(user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Save the draft."""
    page = await registry.get(user.user_id, gateway)
    await page.save()
    return page.state()


@router.post(
    "/delete",
    response_model=AccountPageState,
    summary="Delete own account",
    description="Starts account deletion by opening the credential prompt.",
)
async def delete_account(user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Start the account deletion flow."""
    page = await registry.get(user.user_id, gateway)
    await page.request_deletion()
    return await _render(page, registry, user)


@router.post(
    "/prompt/confirm",
    response_model=AccountPageState,
    summary="Confirm the open prompt",
)
async def confirm_prompt(data: PromptAnswer, user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Answer the open prompt and continue the waiting action."""
    page = await registry.get(user.user_id, gateway)
    await page.confirm_prompt(data.value)
    return await _render(page, registry, user)


@router.post(
    "/prompt/cancel",
    response_model=AccountPageState,
    summary="Cancel the open prompt",
)
async def cancel_prompt(user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Cancel the open prompt."""
    page = await registry.get(user.user_id, gateway)
    await page.cancel_prompt()
    return page.state()


@router.post(
    "/sessions/revoke",
    response_model=AccountPageState,
    summary="Log out other sessions",
)
async def revoke_other_sessions(user: CurrentUser, gateway: Gateway, registry: PageRegistry) -> AccountPageState:
    """Sign out every other session of the current user."""
    page = await registry.get(user.user_id, gateway)
    await page.revoke_sessions()
    return page.state()
