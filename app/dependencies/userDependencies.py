from typing import Annotated
from fastapi import Depends
from app.modules.auth.dependencies import get_current_user, require_admin, require_staff
from app.modules.auth.models import User
from app.modules.auth.schemas import AuthContext

user_dependency = Annotated[User, Depends(get_current_user)]
admin_dependency = Annotated[AuthContext, Depends(require_admin)]
staff_dependency = Annotated[AuthContext, Depends(require_staff)]
