from django import forms
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.utils import timezone
from .models import Usuario, Municipio
from .utils import normalizar_nome
from .materializacao import RegistroPendente
import re


# ============================================================
# FORMULÁRIO DE CADASTRO
# ============================================================
class CadastroForm(forms.Form):
    """
    Cadastro em duas etapas:
    - `save()` cria apenas o `User` do Django, inativo até a confirmação do e-mail.
    - `registro_pendente()` devolve os dados do perfil, que ficam guardados no
      navegador até a confirmação (ver usuarios.materializacao).
    """
    nome = forms.CharField(max_length=150, widget=forms.TextInput(attrs={'class': 'form-control', 'autocomplete': 'nickname'}))
    email = forms.EmailField(
        widget=forms.EmailInput(attrs={
            'placeholder': 'Ex: voce@exemplo.com',
            'class': 'form-control',
            'maxlength': '254',
        })
    )
    senha = forms.CharField(widget=forms.PasswordInput)
    senha_confirm = forms.CharField(widget=forms.PasswordInput, label='Confirme a senha')
    numero_celular = forms.CharField(
        required=False,
        widget=forms.TextInput(attrs={
            'placeholder': 'Ex: (11) 99613-5479',
            'class': 'form-control telefone-mask',
            'maxlength': '15',
            'inputmode': 'numeric',
        })
    )
    data_nascimento = forms.DateField(required=False, widget=forms.DateInput(attrs={'type': 'date'}))
    tipo_usuario = forms.ChoiceField(choices=Usuario.TIPOS, initial=Usuario.TIPO_CLIENTE)
    cidade = forms.IntegerField(required=False, widget=forms.HiddenInput)

    def clean_nome(self):
        nome = normalizar_nome(self.cleaned_data.get('nome'))
        if not nome:
            raise ValidationError('Informe um nome.')
        if not Usuario.nome_disponivel(nome):
            raise ValidationError('Este nome já está em uso.')
        return nome

    def clean_email(self):
        email = (self.cleaned_data.get('email') or '').strip().lower()
        User = get_user_model()
        if User.objects.filter(username__iexact=email).exists() or User.objects.filter(email__iexact=email).exists():
            raise ValidationError('Já existe uma conta com este e-mail.')
        return email

    def clean_numero_celular(self):
        numero = self.cleaned_data.get('numero_celular') or ''
        if not numero:
            return ''
        digitos = re.sub(r'\D', '', numero)
        if len(digitos) < 10 or len(digitos) > 13:
            raise ValidationError('Celular inválido. Informe DDD + número.')
        return numero

    def clean_data_nascimento(self):
        data = self.cleaned_data.get('data_nascimento')
        if data and data > timezone.localdate():
            raise ValidationError('Data de nascimento não pode estar no futuro.')
        return data

    def clean_cidade(self):
        codigo = self.cleaned_data.get('cidade')
        if codigo and not Municipio.objects.filter(pk=codigo).exists():
            raise ValidationError('Município não encontrado.')
        return codigo

    def clean(self):
        cleaned = super().clean()
        senha = cleaned.get('senha')
        confirm = cleaned.get('senha_confirm')
        if senha and confirm and senha != confirm:
            self.add_error('senha_confirm', 'As senhas não coincidem.')
        if senha:
            try:
                validate_password(senha)
            except ValidationError as e:
                self.add_error('senha', e)
        return cleaned

    def save(self):
        User = get_user_model()
        email = self.cleaned_data['email']
        user = User.objects.create_user(username=email, email=email, password=self.cleaned_data['senha'])
        user.is_active = False
        user.save(update_fields=['is_active'])
        return user

    def registro_pendente(self):
        nascimento = self.cleaned_data.get('data_nascimento')
        return RegistroPendente(
            nome=self.cleaned_data['nome'],
            email=self.cleaned_data['email'],
            tipo_usuario=self.cleaned_data['tipo_usuario'],
            numero_celular=self.cleaned_data.get('numero_celular') or None,
            data_nascimento=nascimento.isoformat() if nascimento else None,
            cidade_id=self.cleaned_data.get('cidade') or None,
        )


# ============================================================
# FORMULÁRIO DE LOGIN
# ============================================================
class LoginForm(forms.Form):
    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': 'form-control'}))
    senha = forms.CharField(widget=forms.PasswordInput(attrs={'class': 'form-control'}))


class ReenvioConfirmacaoForm(forms.Form):
    email = forms.EmailField()
