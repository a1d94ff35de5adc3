from pydantic import BaseModel, ConfigDict, Field


class LoginIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=1, max_length=256)


class UserOut(BaseModel):
    id: str
    email: str | None = None


class ProfileOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    email: str | None = None
    full_name: str | None = None
    phone: str | None = None
    company_name: str | None = None
    role: str = "customer"
    created_at: str | None = None
    updated_at: str | None = None


class LoginOut(BaseModel):
    access_token: str
    refresh_token: str | None = None
    expires_in: int | None = None
    expires_at: int | None = None
    token_type: str = "bearer"
    user: UserOut
    profile: ProfileOut | None = None
    # Where the browser persists this session.
    storage_key: str


class SignupIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    password: str = Field(min_length=6, max_length=256)
    full_name: str | None = Field(default=None, max_length=256)
    phone: str | None = Field(default=None, max_length=32)
    company_name: str | None = Field(default=None, max_length=256)


class SignupOut(BaseModel):
    user_id: str | None = None
    email: str
    confirmation_required: bool


class SessionOut(BaseModel):
    state: str
    admin_access: str
    user: UserOut | None = None
    profile: ProfileOut | None = None
    error: str | None = None


class AdminSetupIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str | None = Field(default=None, alias="userId")
