from django.core.management.base import BaseCommand, CommandError

from banco_horas.exceptions import CalculoError
from banco_horas.models import Empresa
from banco_horas.services.calculo import BancoHorasService
from banco_horas.utils.periodos import mes_anterior, mes_atual, parse_mes_ano, rotulo


class Command(BaseCommand):
    help = 'Recalcula o banco de horas de uma empresa (ou de todas as ativas) num intervalo de meses'

    def add_arguments(self, parser):
        parser.add_argument(
            '--empresa',
            type=int,
            help='ID da empresa a recalcular',
        )
        parser.add_argument(
            '--todas',
            action='store_true',
            help='Recalcular todas as empresas ativas',
        )
        parser.add_argument(
            '--desde',
            type=str,
            help='Primeiro mês (MM/YYYY). Por omissão, o mês anterior',
        )
        parser.add_argument(
            '--ate',
            type=str,
            help='Último mês (MM/YYYY). Por omissão, o mês atual',
        )

    def handle(self, *args, **options):
        empresa_id = options.get('empresa')
        if not empresa_id and not options.get('todas'):
            raise CommandError('Indique --empresa ID ou --todas')

        try:
            inicio = parse_mes_ano(options['desde']) if options.get('desde') else mes_anterior(*mes_atual())
            fim = parse_mes_ano(options['ate']) if options.get('ate') else None
        except ValueError as e:
            raise CommandError(str(e))

        if empresa_id:
            empresas = [empresa_id]
        else:
            empresas = list(Empresa.objects.filter(ativo=True).values_list('pk', flat=True))

        service = BancoHorasService()
        incompletas = 0

        for eid in empresas:
            self.stdout.write(f'📊 Empresa {eid} desde {rotulo(*inicio)}')
            try:
                cascata = service.recalcular_periodo(eid, inicio, fim, motivo='Recálculo manual (comando)')
            except CalculoError as e:
                raise CommandError(e.mensagem)

            if cascata.completo:
                self.stdout.write(
                    self.style.SUCCESS(f'  {cascata.meses_recalculados}/{cascata.meses_esperados} meses recalculados')
                )
            else:
                incompletas += 1
                falha = cascata.falha
                self.stdout.write(
                    self.style.ERROR(
                        f'  {cascata.meses_recalculados}/{cascata.meses_esperados} meses recalculados; '
                        f'falha em {rotulo(falha.mes, falha.ano)}: {falha.erro.mensagem}'
                    )
                )

        if incompletas:
            raise CommandError(f'{incompletas} empresa(s) com recálculo incompleto')

        self.stdout.write(self.style.SUCCESS(f'Processed {len(empresas)} empresa(s)'))
