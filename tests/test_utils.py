import pytest

from email_vault.utils import email_domain, mask_email


@pytest.mark.parametrize(
    "email,domain",
    [
        ("alex@gmail.com", "gmail.com"),
        ("  Alex@GMail.com ", "gmail.com"),
        ("gmail.com", ""),
        ("@gmail.com", ""),
        ("a@b@gmail.com", ""),
        ("", ""),
    ],
)
def test_email_domain(email, domain):
    assert email_domain(email) == domain


def test_mask_email():
    assert mask_email("alex.writer@gmail.com") == "al***@gmail.com"
    assert mask_email(None) == ""
