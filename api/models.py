"""
API request and response models for RunShop REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Field names on the wire are camelCase (usernameOrPhone, fullName, ...) to
match the storefront and admin clients. Python attributes stay snake_case;
the alias generator bridges them.

Credential request fields are deliberately loose (optional strings): the
auth core owns the field rules so that every violation comes back as a
400 with the same envelope and the same wording.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from auth.models import Identity
from catalog.models import Product

_camel = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class SignupRequest(BaseModel):
    """Request body for POST /api/v1/user/signup."""

    model_config = _camel

    username: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    password: Optional[str] = Field(default=None, max_length=255)
    confirm_password: Optional[str] = Field(default=None, max_length=255)
    full_name: Optional[str] = Field(default=None, max_length=255)


class SigninRequest(BaseModel):
    """Request body for POST /api/v1/user/signin."""

    model_config = _camel

    username_or_phone: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class AdminSigninRequest(SigninRequest):
    """Request body for POST /api/v1/user/authentication/signin."""

    remember_me: bool = False


class ChangePasswordRequest(BaseModel):
    model_config = _camel

    current_password: Optional[str] = Field(default=None, max_length=255)
    new_password: Optional[str] = Field(default=None, max_length=255)


class ProfileUpdateRequest(BaseModel):
    """Request body for PUT /api/v1/user/{user_id}. Every field is optional."""

    model_config = _camel

    username: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=32)
    email: Optional[str] = Field(default=None, max_length=320)
    full_name: Optional[str] = Field(default=None, max_length=255)
    role: Optional[str] = Field(default=None, max_length=30)
    is_active: Optional[bool] = None


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Sanitized identity. There is no password field, on purpose."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    username: str
    phone: str
    email: str
    full_name: str
    role: str
    is_active: bool
    remember_me: Optional[bool] = None
    avatar: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_identity(cls, identity: Identity) -> "UserOut":
        return cls(**identity.sanitized())


class AuthResponse(BaseModel):
    """Body for successful signup/signin flows. The token is also set as a cookie."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str
    user: UserOut
    token: Optional[str] = None


class UserEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str = ""
    user: UserOut


class UserListResponse(BaseModel):
    """Body for GET /api/v1/user/users."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    success: bool = True
    users: list[UserOut]
    total_pages: int
    current_page: int
    total_items: int
    per_page: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool = True
    message: str


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ProductCreate(BaseModel):
    """Request body for POST /api/v1/products."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    description: str = Field(default="", max_length=5000)


class ProductOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int
    name: str
    description: str
    price: int
    created_at: str

    @classmethod
    def from_product(cls, product: Product) -> "ProductOut":
        return cls(
            id=product.id,
            name=product.name,
            description=product.description,
            price=product.price,
            created_at=product.created_at,
        )


class SearchResponse(BaseModel):
    """Body for GET /api/v1/search."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    success: bool = True
    message: str = "Search results"
    items: list[ProductOut]
    total_items: int
    total_pages: int
    current_page: int


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Error envelope returned on every 4xx/5xx response."""

    model_config = ConfigDict(frozen=True)

    success: bool = False
    code: str
    message: str
    errors: list[str] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
