from __future__ import annotations
from typing import Optional
from fastapi import Depends, Header, HTTPException, status
from pydantic import BaseModel

# -----------------------------------------------------------------------------
# Contexto do operador
#
# Autenticação e autorização acontecem antes desta API: o middleware de borda
# marca a requisição com os headers abaixo. Aqui só conferimos a marca.
# -----------------------------------------------------------------------------

class OperatorContext(BaseModel):
    user_id: str = ""
    session_id: str = ""
    is_super_admin: bool = False

def get_operator_context(
    x_user_id: Optional[str] = Header(None),
    x_session_id: Optional[str] = Header(None),
    x_is_super_admin: Optional[str] = Header(None),
) -> OperatorContext:
    return OperatorContext(
        user_id=x_user_id or "",
        session_id=x_session_id or "",
        is_super_admin=(x_is_super_admin or "").lower() == "true",
    )

def require_platform_operator(
    ctx: OperatorContext = Depends(get_operator_context),
) -> OperatorContext:
    if not ctx.is_super_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Acesso restrito a operadores da plataforma."
        )
    return ctx
