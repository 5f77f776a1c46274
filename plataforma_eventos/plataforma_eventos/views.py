"""
View principal (painel) exibida após login e ao concluir o cadastro.
"""

from django.shortcuts import render
from django.utils import timezone
from eventos.models import Evento, Inscricao


def painel(request):
    """
    Página inicial: próximos eventos do feed e, para o usuário logado,
    suas inscrições ativas ou, se for organizador, seus próximos eventos.
    """
    current_usuario = None
    inscricoes = []
    meus_eventos = []
    perfil_pendente = False

    if request.user.is_authenticated:
        current_usuario = getattr(request.user, 'profile', None)
        if current_usuario is None or current_usuario.deletado:
            current_usuario = None
            perfil_pendente = True
        elif current_usuario.is_organizador:
            meus_eventos = Evento.objects.do_criador(current_usuario).filter(data_realizacao__gte=timezone.now())[:5]
        else:
            inscricoes = (Inscricao.objects
                          .filter(usuario=current_usuario, evento__realizado=False, evento__deletado=False)
                          .select_related('evento')
                          .order_by('-created_at')[:5])

    context = {
        'proximos': Evento.objects.feed().select_related('cidade__estado')[:6],
        'current_usuario': current_usuario,
        'perfil_pendente': perfil_pendente,
        'inscricoes': inscricoes,
        'meus_eventos': meus_eventos,
    }
    return render(request, 'painel.html', context)
