"""User-facing texts sent to the chat and wallet channels."""

from __future__ import annotations

from html import escape
from urllib.parse import quote

WELCOME = "Welcome to the Telegram attestation service!"
ATTESTATION_COMMAND = "To get started, please use the /attest command."
SEND_WALLET = "Please send your own wallet address; it will be verified."
COMMAND_ATTESTATION_AGAIN = "To start the attestation process again, please use the /attest command."
REMOVE_ADDRESS = (
    "You can remove your wallet address before verification by using the /remove command."
)
USERNAME_NOT_FOUND = (
    "Your Telegram account has no username. Please set one in the Telegram settings "
    "and try again."
)
INVALID_WALLET_ADDRESS = "This is not a valid wallet address, please try again."
ADDRESS_RECEIVED = "Your wallet address has been received."
HAVE_TO_VERIFY = "Now you have to verify that you own this address."
CONFIRM_DATA = "Is everything correct?"
CONFIRM_YES = "Yes"
CONFIRM_NO = "No, I want to change"
VERIFY_BUTTON = "Verify"
ALREADY_ATTESTED = "This data has already been attested."
REMOVE_ADDRESS_ALREADY_ATTESTED = "Your address has already been attested and cannot be removed."
REMOVE_ADDRESS_NOT_FOUND = "There is no wallet address to remove."
PUBLISH_FAILED = "We could not publish your attestation right now. Please try again later."
ATTESTATION_IN_PROGRESS = "Your attestation is being published, please wait for the result."
UNKNOWN_ERROR = "An error occurred while processing your request. Please try again later."
ASK_ADDRESS = "Please insert your wallet address (... > Insert my address)."


def ask_verify(address: str) -> str:
    return f"Please prove ownership of {address} by signing the message."


def address_verified(address: str) -> str:
    return f"Your wallet address {address} was successfully verified"


def continue_in_telegram(url: str) -> str:
    return f"Please continue in telegram: \n {url}"


def unit_url(explorer_base_url: str, unit: str) -> str:
    return f"{explorer_base_url}{quote(unit, safe='')}"


def attestation_unit_html(explorer_base_url: str, unit: str) -> str:
    return f'Attestation unit: <a href="{unit_url(explorer_base_url, unit)}">{escape(unit)}</a>'


def attestation_unit_text(explorer_base_url: str, unit: str) -> str:
    return f"Attestation unit: {unit_url(explorer_base_url, unit)}"


def already_attested(explorer_base_url: str, unit: str | None) -> str:
    if not unit:
        return ALREADY_ATTESTED
    return f"{ALREADY_ATTESTED}\n{attestation_unit_html(explorer_base_url, unit)}"


def attestation_data(
    explorer_base_url: str,
    user_id: str | None,
    username: str | None,
    address: str | None = None,
) -> str:
    """Render the data that is about to be attested."""
    text = (
        "<b>Your data for attestation:</b> \n\n"
        f"ID: {escape(user_id) if user_id else 'N/A'} \n"
        f"Username: {escape(username) if username else 'N/A'}"
    )
    if address:
        text += f"\nWallet address: <a href='{explorer_base_url}{address}'>{escape(address)}</a>"
    return text


def unrecorded_unit(explorer_base_url: str, unit: str) -> str:
    """Tell the user a published unit could not be stored on their order."""
    return (
        "Your attestation was published, but your order changed in the meantime and "
        "it could not be recorded. Please keep this link and contact support.\n"
        f"{attestation_unit_html(explorer_base_url, unit)}"
    )
