"""
Context processor que injeta a navegação global e o perfil atual nos templates.
"""

from django.urls import reverse


def global_nav(request):
    """
    - nav_right: links dinâmicos conforme autenticação, tipo de usuário e permissões.
    - current_usuario: perfil Usuario do usuário autenticado, se já materializado.

    Usar reverse() evita hardcoding e erros de rota.
    """
    usuario = None
    user = getattr(request, 'user', None)
    if user is not None and user.is_authenticated:
        usuario = getattr(user, 'profile', None)
        if usuario is not None and usuario.deletado:
            usuario = None

    nav_right = [{'label': 'Eventos', 'url': reverse('painel')}]
    if user is not None and user.is_authenticated:
        if user.is_staff:
            nav_right.append({'label': 'Admin', 'url': reverse('admin:index')})
        if usuario is not None:
            nav_right.append({'label': 'Perfil', 'url': reverse('perfil_publico', kwargs={'slug': usuario.slug})})
        nav_right.append({'label': 'Logout', 'url': reverse('logout')})
    else:
        nav_right.append({'label': 'Login', 'url': reverse('login')})
        nav_right.append({'label': 'Cadastro', 'url': reverse('cadastro')})

    return {'nav_right': nav_right, 'current_usuario': usuario}
