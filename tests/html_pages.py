"""HTML builders shaped like the HSE and EA pages the parsers read."""


def hse_case_row(case_id, name, action_date="15/01/2024", authority="Leeds", activity="Construction"):
    return (
        f'<tr><td><a title="View case" href="case_details.asp?SF=CN&SV={case_id}">{case_id}</a></td>'
        f"<td>{name}</td><td>{action_date}</td><td>{authority}</td><td>{activity}</td></tr>"
    )


def hse_case_listing(*rows):
    header = "<tr><th>Case</th><th>Defendant</th><th>Date</th><th>Local Authority</th><th>Activity</th></tr>"
    footer = '<tr><td colspan="5">Page navigation</td></tr>'
    return f"<html><body><table>{header}{''.join(rows)}{footer}</table></body></html>"


def hse_case_detail(case_id, fine="£5,000.00", costs="£1,234.50", single_breach=True, related=True):
    if single_breach:
        breach = f'<a href="../breach/breach_details.asp?SF=BID&SV={case_id}001">Breach involved in this Case</a>'
    else:
        breach = f'<a href="../search/search.asp?ST=B&SN=F&EO=%3D&SF=CN&SV={case_id}">Breaches involved in this Case</a>'
    links = breach
    if related:
        links += f' | <a href="../search/search.asp?ST=C&SN=R&EO=%3D&SF=RCN&SV={case_id}">Related Cases</a>'
    return f"""
    <html><body><table>
      <tr><td>Case No.</td><td>{case_id}</td><td>HSE Directorate</td><td>FIELD OPERATIONS DIRECTORATE</td></tr>
      <tr><td>Main Activity</td><td>Construction of domestic buildings</td></tr>
      <tr><td>Industry</td><td>Construction</td></tr>
      <tr><td>Local Authority</td><td>Leeds</td></tr>
      <tr><td>Total Fine</td><td>{fine}</td><td>Total Costs Awarded to HSE</td><td>{costs}</td></tr>
      <tr><td>{links}</td></tr>
    </table></body></html>
    """


def hse_breach_list(*breaches, hearing_date="20/02/2024", result="Guilty"):
    rows = "".join(
        f'<tr><td><a href="#">{i}</a></td><td>ACME</td><td>{hearing_date}</td><td>{result}</td>'
        f"<td>Leeds</td><td>{breach}</td></tr>"
        for i, breach in enumerate(breaches, start=1)
    )
    return f"<html><body><table><tr><th>Breach</th></tr>{rows}</table></body></html>"


def hse_related_cases(*case_ids):
    rows = "".join(
        f'<tr><td><a title="View" href="case_details.asp?SF=CN&SV={c}">{c}</a></td>'
        f"<td>Other</td><td>01/01/2024</td><td>Leeds</td><td>Farming</td></tr>"
        for c in case_ids
    )
    return f"<html><body><table>{rows}</table></body></html>"


def hse_notice_listing(*notices):
    rows = "".join(
        f'<tr><td><a title="View notice" href="notice_details.asp?SF=CN&SV={number}">{number}</a></td>'
        f"<td>{name}</td><td>Improvement Notice</td><td>03/04/2024</td><td>Cardiff</td><td>41201</td></tr>"
        for number, name in notices
    )
    return f"<html><body><table>{rows}</table></body></html>"


HSE_NOTICE_DETAIL = """
<html><body><table>
  <tr><td>Notice No.</td><td>310123456</td><td>HSE Directorate</td><td>CONSTRUCTION DIVISION</td></tr>
  <tr><td>Compliance Date</td><td>01/05/2024</td><td>Revised Compliance Date</td><td>15/05/2024</td></tr>
  <tr><td>Description</td><td>  Scaffolding   was not   adequately braced. </td></tr>
  <tr><td>Main Activity</td><td>Building</td></tr>
  <tr><td>Industry</td><td>Construction</td></tr>
  <tr><td>Result</td><td>Complied</td></tr>
</table></body></html>
"""

HSE_NOTICE_BREACHES = """
<html><body><table>
  <tr><td>1</td><td>310123456</td><td>x</td><td>Work at Height Regulations 2005 / 8</td><td>y</td></tr>
  <tr><td>header only</td></tr>
</table></body></html>
"""


def ea_listing(*rows):
    body = "".join(rows)
    return (
        "<html><body><table><thead><tr><th>Name</th><th>Address</th><th>Date</th></tr></thead>"
        f"<tbody>{body}</tbody></table></body></html>"
    )


def ea_row(record_id, name, address="1 High St, Leeds LS1 4AP", action_date="05/11/2009"):
    href = f"/public-register/enforcement-action/registration/{record_id}?__pageState=result-enforcement-action"
    return f'<tr><td><a href="{href}">{name}</a></td><td>{address}</td><td>{action_date}</td></tr>'


EA_DETAIL = """
<html><body>
<dl>
  <dt>Company No.</dt> <dd>01234567</dd>
  <dt>Industry Sector</dt> <dd>Waste Management</dd>
  <dt>Address</dt> <dd>1 High Street</dd>
  <dt>Town</dt> <dd>Leeds</dd>
  <dt>Postcode</dt> <dd>ls1 4ap</dd>
  <dt>Total Fine</dt> <dd>£12,500</dd>
  <dt>Offence</dt> <dd>Operating a regulated facility without a permit</dd>
  <dt>Case Reference</dt> <dd>CR-42</dd>
  <dt>Agency Function</dt> <dd>Waste</dd>
  <dt>Water Impact</dt> <dd>Minor</dd>
  <dt>Land Impact</dt> <dd>Major</dd>
  <dt>Act</dt> <dd>Environmental Protection Act 1990</dd>
  <dt>Section</dt> <dd>33</dd>
</dl>
</body></html>
"""
