from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)


class APIMessage(BaseModel):
    message: str = Field(..., description="Human readable message")


class APIError(BaseModel):
    error: str = Field(..., description="Human readable error")
    details: Optional[str] = Field(None, description="Reference for server-side logs")


class CreatedResponse(APIMessage):
    id: int = Field(..., description="Generated row identifier")


class SignupRequest(_CamelModel):
    first_name: str = Field(..., alias="firstName", description="First name")
    last_name: str = Field(..., alias="lastName", description="Last name")
    email: str = Field(..., min_length=1, description="User email address")
    password: str = Field(..., min_length=1, description="Password")


class LoginRequest(BaseModel):
    email: str = Field(..., description="User email address")
    password: str = Field(..., description="Password")


class LoginResponse(_CamelModel):
    message: str
    user_name: str = Field(..., alias="userName")
    redirect_url: str = Field(..., alias="redirectUrl")


class AlumniRegistrationCreate(BaseModel):
    name: Optional[str] = None
    permanent_address: Optional[str] = None
    present_address: Optional[str] = None
    gender: Optional[str] = None
    country_permanent: Optional[str] = None
    country_present: Optional[str] = None
    standard: Optional[str] = None
    state_permanent: Optional[str] = None
    state_present: Optional[str] = None
    passout_year: Optional[str] = None
    district_permanent: Optional[str] = None
    district_present: Optional[str] = None
    date_of_birth: Optional[str] = None
    city_permanent: Optional[str] = None
    city_present: Optional[str] = None
    current_designation: Optional[str] = None
    mobile_number: Optional[str] = None
    email: Optional[str] = None


class PaymentCreate(_CamelModel):
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    standard: Optional[str] = None
    fees: Optional[str] = None
    card_name: Optional[str] = Field(None, alias="cardName")
    card_number: Optional[str] = Field(None, alias="cardNumber")
    exp_month: Optional[str] = Field(None, alias="expMonth")
    exp_year: Optional[str] = Field(None, alias="expYear")
    cvv: Optional[str] = Field(None, description="Accepted for the form contract, never stored")

    def masked_card_number(self) -> Optional[str]:
        """Card number with all but the last four characters replaced by '*'."""
        if self.card_number is None:
            return None
        digits = "".join(self.card_number.split())
        if len(digits) <= 4:
            return "*" * len(digits)
        return "*" * (len(digits) - 4) + digits[-4:]
