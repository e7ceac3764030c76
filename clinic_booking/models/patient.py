from sqlmodel import Field, SQLModel


class Patient(SQLModel, table=True):
    __tablename__ = "patients"
    id: int | None = Field(default=None, primary_key=True)
    full_name: str | None = None
    email: str = Field(unique=True, index=True)

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
