from fastapi import APIRouter, Depends

from marketplace.auth.dependencies import Actor, get_current_actor

router = APIRouter(tags=['auth'])


@router.get("/me")
def me(actor: Actor = Depends(get_current_actor)):
    return {"id": actor.user_id, "email": actor.email, "role": actor.role.value}
