class FinanceError(ValueError):
    """Kesalahan bisnis keuangan yang aman ditampilkan ke pengguna (via flash)."""


class FeeValidationError(FinanceError):
    pass


class InvalidAcademicYear(FinanceError):
    def __init__(self, value):
        self.value = value
        super().__init__(f'Tahun ajaran "{value}" tidak valid. Gunakan format YYYY/YYYY, contoh 2024/2025.')


class OverpaymentError(FinanceError):
    def __init__(self, amount, outstanding):
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(f'Pembayaran Rp {amount:,.0f} melebihi sisa tagihan (Maks: Rp {outstanding:,.0f}).'.replace(',', '.'))


class DuplicateSPPError(FinanceError):
    pass


class ImportFormatError(FinanceError):
    pass
