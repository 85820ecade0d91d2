from typing import Optional

from pydantic import BaseModel, validator

MAX_SMS_LENGTH = 4096


class Sms(BaseModel):
    sms: str
    result: Optional[str] = None

    @validator("sms")
    def sms_max_length(cls, v: str) -> str:
        if len(v) > MAX_SMS_LENGTH:
            raise ValueError(f"sms must not exceed {MAX_SMS_LENGTH} characters")
        return v
