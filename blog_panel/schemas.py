from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from blog_panel.models import Permission, ResourceType


# --- Role ---

class RoleCreate(BaseModel):
    name: str = Field(min_length=3, max_length=25)
    permissions: list[Permission] = Field(min_length=1)


class RoleUpdate(BaseModel):
    name: str | None = Field(None, min_length=3, max_length=25)
    permissions: list[Permission] | None = None


class RoleResponse(BaseModel):
    id: int
    name: str
    permissions: list[Permission]
    created_at: datetime | None = None
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


class RoleAssign(BaseModel):
    role_name: str = Field(min_length=3, max_length=25)


# --- User ---

class UserCreate(BaseModel):
    email: EmailStr
    name: str = Field(min_length=3, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str | None = None

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("The passwords did not match")
        return self


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)


class UserUpdate(BaseModel):
    name: str | None = Field(None, min_length=3, max_length=100)
    last_name: str | None = Field(None, min_length=3, max_length=100)


class UserPasswordUpdate(BaseModel):
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str | None = None

    @model_validator(mode="after")
    def passwords_match(self):
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("The passwords did not match")
        return self


class UserProfile(BaseModel):
    last_name: str = Field(min_length=3, max_length=100)
    bio: str | None = Field(None, min_length=40, max_length=120)
    birthday: date | None = None
    image: str | None = Field(None, max_length=500)
    name: str | None = Field(None, min_length=3, max_length=100)


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    last_name: str | None = None
    bio: str | None = None
    image: str | None = None
    birthday: date | None = None
    role: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserListResponse(BaseModel):
    users: list[UserResponse]
    total: int


# --- Session ---

class SessionResponse(BaseModel):
    id: int
    created_at: datetime | None = None
    updated_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Taxonomy ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)


class CategoryResponse(BaseModel):
    id: int
    name: str
    slug: str
    post_count: int = 0


class TagResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


# --- Resource ---

class ResourceCreate(BaseModel):
    url: str = Field(min_length=1, max_length=500)
    resource_type: ResourceType = ResourceType.IMAGE


class ResourceUpdate(BaseModel):
    url: str | None = Field(None, min_length=1, max_length=500)
    resource_type: ResourceType | None = None


class ResourceResponse(BaseModel):
    id: int
    url: str
    resource_type: str
    post_id: int
    created_at: datetime | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=2000)


class CommentResponse(BaseModel):
    id: int
    content: str
    post_id: int
    user_id: int
    author_name: str | None = None
    created_at: datetime | None = None


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(min_length=20, max_length=100)
    description: str = Field(min_length=100, max_length=1000)
    content: str = Field(min_length=100, max_length=10000)
    published: bool = False
    category: str | None = Field(None, max_length=100)
    tags: list[str] = []  # tag names for create/update


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=20, max_length=100)
    description: str | None = Field(None, min_length=100, max_length=1000)
    content: str | None = Field(None, min_length=100, max_length=10000)
    published: bool | None = None
    category: str | None = Field(None, max_length=100)
    tags: list[str] | None = None


# --- Pagination ---

class PaginatedResponse(BaseModel):
    items: list  # serialised post dicts
    total: int
    page: int
    page_size: int
    pages: int
