"""
Views de usuários: cadastro com confirmação de e-mail, login/logout, perfil
e sincronização entre abas.

Fluxo do cadastro:
- A aba do formulário (aba A) cria a conta inativa, guarda os dados do perfil
    como cadastro pendente no navegador, envia o e-mail e passa a consultar
    `estado_cadastro` periodicamente.
- O link do e-mail abre outra aba (aba B) em `confirmar_email`, que ativa a
    conta, faz login e executa a materialização do perfil.
- A aba A, no próximo poll, recebe as mensagens do canal e percebe a sessão
    compartilhada: fecha, redireciona ou mostra o erro.
"""

import json
import logging
from django.shortcuts import render, redirect, get_object_or_404
from django.contrib import messages
from django.contrib.auth import authenticate, get_user_model, login as auth_login, logout as auth_logout
from django.contrib.auth.decorators import login_required
from django.contrib.auth.tokens import default_token_generator
from django.http import JsonResponse
from django.urls import reverse
from django.utils.encoding import force_str
from django.utils.http import urlsafe_base64_decode
from django.views.decorators.http import require_GET, require_POST
from .forms import CadastroForm, LoginForm, ReenvioConfirmacaoForm
from .models import Usuario, buscar_municipios
from .utils import ler_slug, normalizar_nome, validar_imagem, ErroUpload, log_audit
from .campos import CAMPOS_PERFIL, ErroCampo, campo_do_registro
from .navegador import ArmazenamentoNavegador, nova_aba
from .materializacao import Resultado, SessaoAuth, SIGNED_IN, SIGNED_OUT, USER_UPDATED, materializacao_da_requisicao
from .cliente import CoordenadorVisibilidade, registro_clientes
from .signals import emitir_estado_auth


logger = logging.getLogger(__name__)

BACKEND_PADRAO = 'django.contrib.auth.backends.ModelBackend'


def _chave_autenticado(aba):
    return f'aba.{aba}.autenticado'


def _perfil_ativo(user):
    perfil = getattr(user, 'profile', None) if user.is_authenticated else None
    if perfil is None or perfil.deletado:
        return None
    return perfil


def _abrir_aba(request, autenticado):
    """Registra uma aba recém-renderizada: cursor no canal e estado de auth visto."""
    aba = nova_aba()
    materializacao = materializacao_da_requisicao(request, aba)
    materializacao.canal.inscrever(aba)
    materializacao.armazenamento.set(_chave_autenticado(aba), 'true' if autenticado else 'false')
    return aba


# ============================================================
# CADASTRO
# ============================================================
def cadastro(request):
    if request.method == 'POST':
        form = CadastroForm(request.POST)
        if form.is_valid():
            user = form.save()
            registro = form.registro_pendente()
            aba = _abrir_aba(request, autenticado=False)
            materializacao_da_requisicao(request, aba).salvar_pendente(registro)
            log_audit(request=request, django_user=user, action='signup', object_type='auth.User', object_id=user.pk, description=f'Cadastro iniciado: {registro.nome}')
            try:
                from notifications.services import queue_confirmacao_cadastro
                queue_confirmacao_cadastro(user, registro.nome)
            except Exception:
                logger.exception('Falha ao enviar e-mail de confirmação para %s', user.email)
                messages.error(request, 'Não foi possível enviar o e-mail de confirmação. Use "reenviar" em instantes.')
            return render(request, 'usuarios/aguardando_confirmacao.html', {'aba': aba, 'email': user.email})
    else:
        form = CadastroForm()
    return render(request, 'usuarios/cadastro.html', {'form': form})


def _resposta_estado(request, desfecho):
    if desfecho is not None:
        if desfecho.resultado is Resultado.DESISTIU:
            return JsonResponse({'acao': 'fechar'})
        if desfecho.resultado is Resultado.FALHOU:
            return JsonResponse({'acao': 'erro', 'mensagem': desfecho.mensagem})
        if desfecho.resultado is Resultado.CONCLUIDO:
            return JsonResponse({'acao': 'redirecionar', 'url': reverse('painel')})
    if request.user.is_authenticated:
        return JsonResponse({'acao': 'redirecionar', 'url': reverse('painel')})
    return JsonResponse({'acao': 'aguardar'})


@require_GET
def estado_cadastro(request):
    """Poll da aba que aguarda a confirmação.

    Primeiro processa as mensagens do canal; depois compara a sessão
    compartilhada com o último estado visto por esta aba e, se ela passou a
    estar autenticada, emite SIGNED_IN para a aba.
    """
    aba = request.GET.get('aba', '')
    if not aba:
        return JsonResponse({'acao': 'erro', 'mensagem': 'Aba não informada.'}, status=400)

    materializacao = materializacao_da_requisicao(request, aba)
    if not materializacao.canal.inscrita(aba):
        materializacao.canal.inscrever(aba)
    desfecho = materializacao.drenar_canal()
    if desfecho.resultado is Resultado.DESISTIU:
        materializacao.canal.fechar(aba)
        return _resposta_estado(request, desfecho)

    armazenamento = materializacao.armazenamento
    chave = _chave_autenticado(aba)
    autenticado = request.user.is_authenticated
    antes = armazenamento.get(chave) == 'true'
    if autenticado == antes:
        return _resposta_estado(request, None)

    armazenamento.set(chave, 'true' if autenticado else 'false')
    if not autenticado:
        return _resposta_estado(request, None)
    desfecho = emitir_estado_auth(request, SIGNED_IN, aba=aba)
    return _resposta_estado(request, desfecho)


def confirmar_email(request, uidb64, token):
    User = get_user_model()
    try:
        uid = force_str(urlsafe_base64_decode(uidb64))
        user = User.objects.get(pk=uid)
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        user = None

    valido = user is not None and default_token_generator.check_token(user, token)
    # reabrir o link já usado na mesma sessão é a tentativa natural após uma falha
    reabertura = user is not None and request.user.is_authenticated and request.user.pk == user.pk
    if not valido and not reabertura:
        return render(request, 'erro.html', {'mensagem': 'Link de confirmação inválido ou expirado.'}, status=400)

    if not user.is_active:
        user.is_active = True
        user.save(update_fields=['is_active'])
        log_audit(request=request, django_user=user, action='confirm_email', object_type='auth.User', object_id=user.pk, description=f'E-mail confirmado: {user.email}')

    if not reabertura:
        auth_login(request, user, backend=BACKEND_PADRAO)
    registro_clientes.get(request.perfil_navegador).entrar(user)

    aba = _abrir_aba(request, autenticado=True)
    desfecho = emitir_estado_auth(request, SIGNED_IN, user=user, aba=aba)
    resultado = desfecho.resultado if desfecho else Resultado.IGNORADO

    if resultado is Resultado.DESISTIU:
        return render(request, 'usuarios/fechar_aba.html', {'aba': aba})
    if resultado is Resultado.FALHOU:
        return render(request, 'erro.html', {'mensagem': desfecho.mensagem, 'tentar_novamente': True})
    if resultado is Resultado.CONCLUIDO:
        messages.success(request, 'E-mail confirmado. Seu cadastro foi concluído!')
    return redirect('painel')


@login_required
@require_POST
def materializar(request):
    """Nova tentativa manual da materialização, para a sessão atual."""
    aba = request.POST.get('aba') or nova_aba()
    materializacao = materializacao_da_requisicao(request, aba)
    desfecho = materializacao.ao_mudar_estado_auth(SIGNED_IN, SessaoAuth.do_usuario(request.user))
    if 'text/html' in request.headers.get('Accept', ''):
        # envio pelo formulário do painel ou da página de erro
        if desfecho.resultado is Resultado.FALHOU:
            messages.error(request, desfecho.mensagem)
        elif desfecho.resultado is Resultado.CONCLUIDO:
            messages.success(request, 'Cadastro concluído!')
        elif _perfil_ativo(request.user) is None:
            messages.info(request, 'Nenhum cadastro pendente neste navegador. Faça o cadastro novamente.')
        return redirect('painel')
    status = 409 if desfecho.resultado is Resultado.FALHOU else 200
    return JsonResponse({'resultado': desfecho.resultado.value, 'mensagem': desfecho.mensagem}, status=status)


@require_POST
def reenviar_confirmacao(request):
    form = ReenvioConfirmacaoForm(request.POST)
    if not form.is_valid():
        return JsonResponse({'enviado': False, 'mensagem': 'Informe um e-mail válido.'}, status=400)
    email = form.cleaned_data['email'].lower()
    user = get_user_model().objects.filter(username__iexact=email, is_active=False).first()
    if user is None:
        return JsonResponse({'enviado': False, 'mensagem': 'Nenhuma conta aguardando confirmação para este e-mail.'}, status=404)

    pendente = materializacao_da_requisicao(request, nova_aba()).ler_pendente()
    nome = pendente.nome if pendente and pendente.email == user.email else ''
    try:
        from notifications.services import queue_confirmacao_cadastro
        queue_confirmacao_cadastro(user, nome)
    except Exception:
        logger.exception('Falha ao reenviar confirmação para %s', email)
        return JsonResponse({'enviado': False, 'mensagem': 'Falha ao enviar o e-mail. Tente novamente.'}, status=502)
    return JsonResponse({'enviado': True})


@require_GET
def nome_disponivel(request):
    nome = normalizar_nome(request.GET.get('nome'))
    return JsonResponse({'nome': nome, 'disponivel': Usuario.nome_disponivel(nome)})


@require_GET
def municipios(request):
    return JsonResponse({'resultados': buscar_municipios(request.GET.get('q'))})


# ============================================================
# LOGIN / LOGOUT
# ============================================================
def login_usuario(request):
    if request.method == 'POST':
        form = LoginForm(request.POST)
        if form.is_valid():
            email = form.cleaned_data['email'].lower()
            senha = form.cleaned_data['senha']
            user = authenticate(request, username=email, password=senha)
            if user is None:
                pendente = get_user_model().objects.filter(username__iexact=email, is_active=False).first()
                if pendente is not None and pendente.check_password(senha):
                    if Usuario.objects.filter(user=pendente, deletado=True).exists():
                        form.add_error(None, 'Esta conta foi excluída.')
                    else:
                        form.add_error(None, 'Confirme seu e-mail antes de entrar. Verifique sua caixa de entrada.')
                else:
                    form.add_error(None, 'E-mail ou senha inválidos.')
            else:
                auth_login(request, user, backend=BACKEND_PADRAO)
                registro_clientes.get(request.perfil_navegador).entrar(user)
                desfecho = emitir_estado_auth(request, SIGNED_IN, user=user)
                if desfecho is not None and desfecho.resultado is Resultado.FALHOU:
                    messages.error(request, desfecho.mensagem)
                elif desfecho is not None and desfecho.resultado is Resultado.CONCLUIDO:
                    messages.success(request, 'Cadastro concluído!')
                else:
                    messages.success(request, 'Bem-vindo!')
                return redirect('painel')
    else:
        form = LoginForm()
    return render(request, 'usuarios/login.html', {'form': form})


def logout_usuario(request):
    if request.user.is_authenticated:
        emitir_estado_auth(request, SIGNED_OUT)
    auth_logout(request)
    messages.info(request, 'Você saiu da sessão.')
    return redirect('login')


# ============================================================
# PERFIL
# ============================================================
def perfil_publico(request, slug):
    usuario = get_object_or_404(Usuario.objects.select_related('cidade__estado', 'user'), nome__iexact=ler_slug(slug), deletado=False)
    dono = request.user.is_authenticated and usuario.user_id == request.user.pk
    campos = []
    if dono:
        campos = [dict(c.as_dict(), valor=c.valor_de(usuario)) for c in CAMPOS_PERFIL.values()]
    eventos = []
    if usuario.is_organizador:
        eventos = usuario.eventos_criados.feed()
    context = {
        'usuario': usuario,
        'dono': dono,
        'campos': campos,
        'eventos': eventos,
        'reviews': usuario.reviews.select_related('evento')[:10],
    }
    return render(request, 'usuarios/perfil.html', context)


@login_required
def meu_perfil(request):
    perfil = _perfil_ativo(request.user)
    if perfil is None:
        messages.info(request, 'Seu perfil ainda não foi criado. Confirme o e-mail ou tente concluir o cadastro.')
        return redirect('painel')
    return redirect('perfil_publico', slug=perfil.slug)


def _dados_requisicao(request):
    if request.content_type == 'application/json':
        try:
            return json.loads(request.body or b'{}')
        except ValueError:
            return {}
    return request.POST


@login_required
@require_POST
def atualizar_campo_perfil(request):
    perfil = _perfil_ativo(request.user)
    if perfil is None:
        return JsonResponse({'detail': 'Perfil não encontrado.'}, status=404)
    dados = _dados_requisicao(request)
    try:
        campo = campo_do_registro(CAMPOS_PERFIL, dados.get('campo', ''))
        campo.salvar(perfil, dados.get('valor'))
    except ErroCampo as e:
        return JsonResponse({'detail': str(e)}, status=400)
    emitir_estado_auth(request, USER_UPDATED)
    resposta = {'campo': campo.nome, 'valor': campo.valor_de(perfil)}
    if campo.nome == 'nome':
        resposta['url'] = reverse('perfil_publico', kwargs={'slug': perfil.slug})
    return JsonResponse(resposta)


@login_required
@require_POST
def enviar_imagem_perfil(request):
    perfil = _perfil_ativo(request.user)
    if perfil is None:
        return JsonResponse({'detail': 'Perfil não encontrado.'}, status=404)
    try:
        arquivo = validar_imagem(request.FILES.get('imagem'))
    except ErroUpload as e:
        return JsonResponse({'detail': str(e)}, status=400)
    perfil.imagem = arquivo
    perfil.save()
    return JsonResponse({'imagem_url': perfil.imagem.url})


@login_required
@require_POST
def excluir_conta(request):
    perfil = _perfil_ativo(request.user)
    user = request.user
    emitir_estado_auth(request, SIGNED_OUT)
    if perfil is not None:
        perfil.deletado = True
        perfil.save(update_fields=['deletado', 'updated_at'])
    user.is_active = False
    user.save(update_fields=['is_active'])
    log_audit(request=request, usuario=perfil, django_user=user, action='delete_account', object_type='auth.User', object_id=user.pk, description='Conta excluída pelo usuário')
    auth_logout(request)
    messages.info(request, 'Sua conta foi excluída.')
    return redirect('login')


# ============================================================
# SESSÃO / VISIBILIDADE DA ABA
# ============================================================
@require_POST
def visibilidade(request):
    dados = _dados_requisicao(request)
    aba = dados.get('aba')
    estado = dados.get('estado')
    if not aba:
        return JsonResponse({'detail': 'Aba não informada.'}, status=400)
    coordenador = CoordenadorVisibilidade(request.perfil_navegador, aba, armazenamento=ArmazenamentoNavegador.da_requisicao(request))
    try:
        recriado, sessao = coordenador.notificar(estado, request.user)
    except ValueError as e:
        return JsonResponse({'detail': str(e)}, status=400)
    return JsonResponse({'recriado': recriado, 'sessao': sessao.as_dict() if sessao else None})
