# core/forms/approval_forms.py
from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group

from core.approval.exceptions import ValidationError
from core.constants import Settings
from core.models import ApprovalRequest

User = get_user_model()


# ------------------------------------------------------------------
# API bodies
# ------------------------------------------------------------------
class ApprovalCreateForm(forms.Form):
    """Body of POST /api/approvals (payload is validated separately per request type)."""
    requestType = forms.CharField(max_length=50)
    subjectType = forms.ChoiceField(choices=Settings.SUBJECT_CHOICES)
    subjectId = forms.CharField(max_length=64)
    title = forms.CharField(max_length=255, required=False)
    priority = forms.ChoiceField(choices=ApprovalRequest.Priority.choices, required=False)

    def clean_requestType(self):
        return self.cleaned_data["requestType"].strip()

    def clean_priority(self):
        return self.cleaned_data.get("priority") or ApprovalRequest.Priority.NORMAL


class SystemConfigForm(forms.Form):
    key = forms.CharField(max_length=100)
    value = forms.CharField(required=False, strip=False)
    description = forms.CharField(max_length=255, required=False)

    def clean_key(self):
        return self.cleaned_data["key"].strip()


class VoidApplicationForm(forms.Form):
    """Body of POST /api/bills/<id>/void-applications."""
    reason = forms.CharField(max_length=2000)
    fees = forms.JSONField(required=False)
    priority = forms.ChoiceField(choices=ApprovalRequest.Priority.choices, required=False)


# ------------------------------------------------------------------
# payload schemas, one per request type
# ------------------------------------------------------------------
class VoidBillPayload(forms.Form):
    reason = forms.CharField(max_length=2000)
    fees = forms.JSONField(required=False)

    def clean_fees(self):
        fees = self.cleaned_data.get("fees")
        if fees in (None, ""):
            return []
        if not isinstance(fees, list):
            raise forms.ValidationError("fees must be a list.")
        return fees


class ContractPayload(forms.Form):
    contract_no = forms.CharField(max_length=64)
    customer_name = forms.CharField(max_length=255)
    amount = forms.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    currency = forms.CharField(max_length=3, required=False)

    def clean_currency(self):
        return (self.cleaned_data.get("currency") or "EUR").upper()


class UserCreatePayload(forms.Form):
    username = forms.CharField(max_length=150)
    email = forms.EmailField(required=False)
    first_name = forms.CharField(max_length=150, required=False)
    last_name = forms.CharField(max_length=150, required=False)
    role = forms.CharField(max_length=150, required=False)

    def clean_username(self):
        username = self.cleaned_data["username"].strip()
        if User.objects.filter(username=username).exists():
            raise forms.ValidationError("A user with this username already exists.")
        return username


class RoleChangePayload(forms.Form):
    user_id = forms.IntegerField(min_value=1)
    new_role = forms.CharField(max_length=150)

    def clean_user_id(self):
        user_id = self.cleaned_data["user_id"]
        if not User.objects.filter(pk=user_id).exists():
            raise forms.ValidationError("Unknown user.")
        return user_id


class PermissionGrantPayload(forms.Form):
    role = forms.CharField(max_length=150)
    permission_codes = forms.JSONField()

    def clean_role(self):
        role = self.cleaned_data["role"].strip()
        if not Group.objects.filter(name=role).exists():
            raise forms.ValidationError("Unknown role.")
        return role

    def clean_permission_codes(self):
        codes = self.cleaned_data.get("permission_codes")
        if not isinstance(codes, list) or not codes or not all(isinstance(c, str) and "." in c for c in codes):
            raise forms.ValidationError("permission_codes must be a list like ['app_label.codename'].")
        return codes


class UserDeletePayload(forms.Form):
    user_id = forms.IntegerField(min_value=1)
    reason = forms.CharField(max_length=2000, required=False)

    def clean_user_id(self):
        user_id = self.cleaned_data["user_id"]
        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is None:
            raise forms.ValidationError("Unknown or already deactivated user.")
        if user.is_superuser:
            raise forms.ValidationError("Superusers cannot be removed through an approval request.")
        return user_id


PAYLOAD_FORMS = {
    Settings.REQUEST_TYPE_VOID_BILL: VoidBillPayload,
    Settings.REQUEST_TYPE_CONTRACT: ContractPayload,
    Settings.REQUEST_TYPE_USER_CREATE: UserCreatePayload,
    Settings.REQUEST_TYPE_ROLE_CHANGE: RoleChangePayload,
    Settings.REQUEST_TYPE_PERMISSION_GRANT: PermissionGrantPayload,
    Settings.REQUEST_TYPE_USER_DELETE: UserDeletePayload,
}


def validate_payload(request_type, data):
    """Clean the payload of a new request; unknown request types keep their JSON object as-is."""
    if data in (None, ""):
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("payload must be a JSON object.")

    form_class = PAYLOAD_FORMS.get(request_type)
    if form_class is None:
        return data

    form = form_class(data=data)
    if not form.is_valid():
        raise ValidationError(
            f"Invalid payload for '{request_type}'.",
            details=form.errors.get_json_data(),
        )
    return dict(form.cleaned_data)


def form_errors(form):
    """Raise our ValidationError for an invalid API body form."""
    raise ValidationError("Invalid request body.", details=form.errors.get_json_data())
